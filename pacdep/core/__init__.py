"""Core modules for pacdep"""

from .database import PackageDatabase, open_database
from .analyzer import Analyzer, AnalysisOptions

__all__ = ['PackageDatabase', 'open_database', 'Analyzer', 'AnalysisOptions']
