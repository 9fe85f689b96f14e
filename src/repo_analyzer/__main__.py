"""Run the gateway with ``python -m repo_analyzer``."""

from repo_analyzer.main import run

if __name__ == "__main__":
    run()
