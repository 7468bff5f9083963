"""
sqldesk PyQt6 bridge

Table model and background workers for showing result envelopes in a grid.
"""

from .results_model import ResultsTableModel
from .workers import QueryWorker, SaveWorker

__all__ = ["ResultsTableModel", "QueryWorker", "SaveWorker"]
