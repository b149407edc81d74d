from .console_reporter import report_run, report_unpinned
from .json_reporter import report_run_json, report_unpinned_json

__all__ = ["report_run", "report_unpinned", "report_run_json", "report_unpinned_json"]
