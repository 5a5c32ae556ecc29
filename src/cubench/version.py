__version__ = "0.1.0"

GENERATED_BY = f"cubench@{__version__}"
