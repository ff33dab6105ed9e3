import logging
import json
import os
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import numpy as np

from pricing_console.config import LOG_FILE


class NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        return super(NumpyEncoder, self).default(obj)


class RecommendationLogger:
    def __init__(self, log_file: str = LOG_FILE):
        self.log_file = log_file
        self.logger = logging.getLogger("recommendations")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

        # Prevent duplicate handlers
        if not self.logger.handlers:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            fh = logging.FileHandler(log_file)
            fh.setLevel(logging.INFO)

            formatter = logging.Formatter('%(message)s')
            fh.setFormatter(formatter)

            self.logger.addHandler(fh)

    def _write(self, level: int, entry: Dict[str, Any]):
        entry = {'timestamp': datetime.now(timezone.utc).isoformat(), **entry}
        self.logger.log(level, json.dumps(entry, cls=NumpyEncoder))

    def log_recommendation(
        self,
        record: Dict[str, Any],
        result: Dict[str, Any],
        response_time_ms: float
    ):
        """Log a single recommendation with its input record"""
        self._write(logging.INFO, {
            'operation': 'recommend',
            'input': record,
            'output': {
                'price_recommended': result.get('price_recommended'),
                'p_complete_recommended': result.get('p_complete_recommended'),
                'gm_pct': result.get('gm_pct'),
                'bounds': result.get('bounds'),
            },
            'response_time_ms': response_time_ms
        })

    def log_batch(
        self,
        filename: str,
        summary: Dict[str, Any],
        kpis: Optional[Dict[str, Any]],
        averages: Dict[str, Any],
        response_time_ms: float
    ):
        """Log a processed batch upload"""
        self._write(logging.INFO, {
            'operation': 'recommend_batch',
            'file': filename,
            'summary': summary,
            'kpis': kpis,
            'averages': averages,
            'response_time_ms': response_time_ms
        })

    def log_error(self, operation: str, error: str, context: Dict[str, Any]):
        """Log failed operations"""
        self._write(logging.ERROR, {
            'level': 'ERROR',
            'operation': operation,
            'error': str(error),
            'context': context
        })
