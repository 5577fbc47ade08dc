"""Package entry point for ``python -m asset_bundler``."""

from asset_bundler.cli import main

if __name__ == "__main__":
    main()
