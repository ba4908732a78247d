#!/usr/bin/env python3
"""
Seasonal ARIMA and VAR forecasting of monthly California and New York exports.

Usage
-----
    python forecaster_exports.py --help
    python forecaster_exports.py --ca-csv data/exports_CA.csv --ny-csv data/exports_NY.csv
    python forecaster_exports.py --skip-auto --metrics-csv analysis/metrics.csv

The pipeline lives in export_forecaster_src/; see export_forecaster_src/main.py.
"""

import sys

if __name__ == "__main__":
    try:
        from export_forecaster_src.main import main
    except ImportError as e:
        print(f"Error: Cannot import the modules: {e}")
        print("Please ensure the export_forecaster_src/ directory is present and its dependencies are installed.")
        sys.exit(1)
    main()
