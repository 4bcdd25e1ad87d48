from .logger import debug, get_logger, log, new_trace_id, warn
