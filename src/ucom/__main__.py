from .surfaces.cli.cli import main

main()
