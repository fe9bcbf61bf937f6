"""Allow running the event pipeline as a module: python -m microsaas."""

from microsaas.runner import main

if __name__ == "__main__":
    main()
