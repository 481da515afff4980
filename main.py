import sys

from csslens.app import main

if __name__ == "__main__":
    sys.exit(main())
