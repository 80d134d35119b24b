# src/gh_monitor/__main__.py

from .cli.main import main

main()
