"""Keeps each primary document paired with its generated companion view.

The host opens documents asynchronously and reports completion through a
callback on the same event loop, so the synchronizer tracks in-flight opens in
the ``PairRegistry`` alongside the finished pairs.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Protocol

from csslens.core.attribution import AttributionModel
from csslens.core.overlay import OverlayEngine
from csslens.core.pair_registry import DocumentPair, PairRegistry, PendingOpen

logger = logging.getLogger(__name__)


class Region(Enum):
    PRIMARY = 0
    SECONDARY = 1


OpenCallback = Callable[[bool], None]


class EditorHost(Protocol):
    def open_document(self, uri: str, region: Region, *, preserve_focus: bool, on_opened: OpenCallback) -> None: ...

    def reveal_document(self, uri: str, region: Region, *, preserve_focus: bool) -> None: ...

    def refresh_document(self, uri: str) -> None: ...

    def close_document(self, uri: str) -> None: ...

    def documents_in_region(self, region: Region) -> list[str]: ...

    def active_document(self, region: Region) -> str | None: ...

    def is_open(self, uri: str) -> bool: ...

    def is_visible(self, uri: str) -> bool: ...


class CompanionSynchronizer:
    def __init__(self, host: EditorHost, overlay: OverlayEngine, registry: PairRegistry | None = None) -> None:
        self._host = host
        self._overlay = overlay
        self._registry = registry if registry is not None else PairRegistry()
        self._latest_models: dict[str, AttributionModel] = {}

    @property
    def registry(self) -> PairRegistry:
        return self._registry

    def pairs(self) -> list[DocumentPair]:
        return self._registry.pairs()

    # -------- backend requests --------

    def show_companion(self, companion_uri: str, model: AttributionModel, primary_uri: str | None = None) -> None:
        companion = str(companion_uri or "").strip()
        if not companion:
            logger.warning("Ignoring companion request without a uri")
            return
        primary = primary_uri or self._host.active_document(Region.PRIMARY)
        if not primary:
            logger.warning("No active primary document for companion %s", companion)
            return

        self.reconcile()
        self._latest_models[companion] = model

        pair = self._registry.pair_for_primary(primary)
        if pair is not None and pair.companion_uri != companion:
            logger.info("Companion for %s changed from %s to %s", primary, pair.companion_uri, companion)
            self._drop_pair(primary, close_companion=True)
            pair = None

        if pair is not None:
            self._refresh_and_render(companion, model)
            return

        shared = self._registry.pair_for_companion(companion)
        if shared is not None:
            # One generated document serving several primaries follows the latest requester.
            logger.info("Companion %s moves from %s to %s", companion, shared.primary_uri, primary)
            self._registry.remove(shared.primary_uri)
            self._registry.register(primary, companion)
            self._host.reveal_document(companion, Region.SECONDARY, preserve_focus=True)
            self._refresh_and_render(companion, model)
            return

        in_flight = self._registry.pending_for(primary)
        if in_flight is not None:
            if in_flight.companion_uri == companion:
                logger.debug("Open of %s already in flight for %s", companion, primary)
                return
            # The superseded open closes itself as an orphan when it completes.
            logger.info("Companion for %s changed from %s to %s mid-open", primary, in_flight.companion_uri, companion)
            self._registry.cancel_open(primary)
            self._latest_models.pop(in_flight.companion_uri, None)

        pending = self._registry.begin_open(primary, companion)
        if pending is None:
            return
        logger.debug("Opening companion %s for %s", companion, primary)
        self._host.open_document(
            companion,
            Region.SECONDARY,
            preserve_focus=True,
            on_opened=lambda ok, p=pending: self._on_companion_opened(p, ok),
        )

    def _refresh_and_render(self, companion: str, model: AttributionModel) -> None:
        # Refreshing may fire an edit event that drops the stored model, so store it afterwards.
        self._host.refresh_document(companion)
        self._latest_models[companion] = model
        self._overlay.render(companion, model)

    def _on_companion_opened(self, pending: PendingOpen, ok: bool) -> None:
        still_wanted = self._registry.finish_open(pending)
        companion = pending.companion_uri
        if not ok:
            logger.warning("Host failed to open companion %s", companion)
            self._latest_models.pop(companion, None)
            return

        if not still_wanted or not self._host.is_open(pending.primary_uri):
            logger.info("Closing orphaned companion %s; %s no longer wants it", companion, pending.primary_uri)
            self._latest_models.pop(companion, None)
            self._host.close_document(companion)
            return

        self._registry.register(pending.primary_uri, companion)
        model = self._latest_models.get(companion)
        if model is not None:
            self._overlay.render(companion, model)

    # -------- host events --------

    def document_opened(self, uri: str, region: Region) -> None:
        self.reconcile()

    def active_view_changed(self, uri: str, region: Region) -> None:
        self.reconcile()
        pair = self._registry.pair_for_primary(uri)
        if pair is not None:
            self._primary_focused(pair)
            return
        pair = self._registry.pair_for_companion(uri)
        if pair is not None:
            self._companion_focused(pair)

    def document_closed(self, uri: str) -> None:
        if self._registry.pair_for_primary(uri) is not None or self._registry.pending_for(uri) is not None:
            self.primary_closed(uri)
            return
        if self._registry.pair_for_companion(uri) is not None:
            self.companion_closed(uri)
            return
        logger.debug("Close of %s matches no pair", uri)

    def companion_edited(self, uri: str) -> None:
        if not self._overlay.has_render(uri):
            return
        logger.debug("Companion %s changed; discarding its attribution model", uri)
        self._latest_models.pop(uri, None)
        self._overlay.clear(uri)

    def primary_closed(self, uri: str) -> None:
        if self._registry.cancel_open(uri) is not None:
            logger.debug("Cancelled in-flight companion open for %s", uri)
        if self._registry.pair_for_primary(uri) is None:
            logger.debug("Primary %s closed without a pair", uri)
            return
        self._drop_pair(uri, close_companion=True)

    def companion_closed(self, uri: str) -> None:
        pair = self._registry.pair_for_companion(uri)
        if pair is None:
            logger.debug("Companion %s closed without a pair", uri)
            return
        self._drop_pair(pair.primary_uri, close_companion=False)

    def _primary_focused(self, pair: DocumentPair) -> None:
        if self._host.active_document(Region.SECONDARY) == pair.companion_uri:
            return
        self._host.reveal_document(pair.companion_uri, Region.SECONDARY, preserve_focus=True)

    def _companion_focused(self, pair: DocumentPair) -> None:
        if self._host.is_visible(pair.primary_uri):
            return
        self._host.reveal_document(pair.primary_uri, Region.PRIMARY, preserve_focus=True)

    # -------- placement and reconciliation --------

    def placement_for(self, uri: str, requested: Region) -> Region:
        if requested is Region.SECONDARY and not self._registry.is_companion(uri):
            return Region.PRIMARY
        return requested

    def reconcile(self) -> None:
        present = set(self._host.documents_in_region(Region.SECONDARY))
        for pair in self._registry.pairs():
            if pair.companion_uri in present:
                continue
            logger.info("Companion %s vanished; unpairing %s", pair.companion_uri, pair.primary_uri)
            self._drop_pair(pair.primary_uri, close_companion=False)

    def teardown(self) -> None:
        for pair in self._registry.pairs():
            self._overlay.clear(pair.companion_uri)
        self._registry.clear()
        self._latest_models.clear()

    def _drop_pair(self, primary_uri: str, *, close_companion: bool) -> None:
        pair = self._registry.remove(primary_uri)
        if pair is None:
            return
        self._overlay.forget(pair.companion_uri)
        self._latest_models.pop(pair.companion_uri, None)
        if close_companion:
            self._host.close_document(pair.companion_uri)
