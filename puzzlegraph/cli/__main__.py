"""Allow `python -m puzzlegraph.cli`."""
from puzzlegraph.cli.main import run

run()
