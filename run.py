#!/usr/bin/env python3
"""
Loan Engine Entry Point

Starts the FastAPI server for the loan amortization and payment allocation engine.
"""

import sys

from loan_engine.api import run_server


if __name__ == "__main__":
    try:
        run_server()
    except KeyboardInterrupt:
        print("\nShutting down Loan Engine...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
