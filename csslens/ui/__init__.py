"""Qt widgets and controllers for the companion view."""

from .companion_controller import CompanionController
from .editor_workspace import EditorWidget, EditorWorkspace
from .qt_host import QtDecorationSurface, QtEditorHost

__all__ = [
    "CompanionController",
    "EditorWidget",
    "EditorWorkspace",
    "QtDecorationSurface",
    "QtEditorHost",
]
