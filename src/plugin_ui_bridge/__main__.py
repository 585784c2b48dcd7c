"""Entry point for ``python -m plugin_ui_bridge``."""

from .cli import main

if __name__ == "__main__":
    main()
