"""Console entry point for the RetailPulse CLI application."""

from retailpulse.app import app


def main() -> None:
    """Invoke the RetailPulse Typer application."""

    app()


if __name__ == "__main__":
    main()
