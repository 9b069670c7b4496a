"""
Entry point for `python -m sigrange`.

Usage:
    python -m sigrange sign document.pdf --key signer.p12
    python -m sigrange check document_signed.pdf
    python -m sigrange info document_signed.pdf
"""

from .ui.cli import main

main()
