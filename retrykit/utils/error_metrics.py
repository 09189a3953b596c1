import threading
import time
from typing import Dict, Optional, List
from datetime import datetime
from collections import defaultdict
import json


MAX_ERROR_DETAILS = 1000


class ErrorMetrics:
    """
    Collects retry outcomes and error counts per category and operation.
    Thread-safe; one instance can be shared by executors on many threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._errors_by_category: Dict[str, int] = defaultdict(int)
        self._errors_by_operation: Dict[str, int] = defaultdict(int)
        self._error_details: List[Dict] = []
        self._start_time = time.time()
        self._total_operations = 0
        self._successful_operations = 0
        self._retried_operations = 0
        self._failed_operations = 0
        self._cancelled_operations = 0

    def record_error(
        self,
        category: str,
        operation_name: str,
        error_message: str,
        is_retryable: bool = False,
        attempt: int = 1,
        exception_type: Optional[str] = None
    ):
        """
        Record a failed attempt.

        Args:
            category: Error category value (e.g. 'transient', 'not_found')
            operation_name: Name of the operation that failed
            error_message: Error message
            is_retryable: Whether the error is retryable
            attempt: Attempt number when the error occurred
            exception_type: Class name of the exception
        """
        with self._lock:
            self._errors_by_category[category] += 1
            self._errors_by_operation[operation_name] += 1

            self._error_details.append({
                'timestamp': datetime.now().isoformat(),
                'category': category,
                'operation_name': operation_name,
                'error_message': error_message,
                'is_retryable': is_retryable,
                'attempt': attempt,
                'exception_type': exception_type
            })

            if len(self._error_details) > MAX_ERROR_DETAILS:
                self._error_details = self._error_details[-MAX_ERROR_DETAILS:]

    def record_success(self, operation_name: str, was_retried: bool = False):
        """Record a successful run, noting whether it needed retries."""
        with self._lock:
            self._successful_operations += 1
            if was_retried:
                self._retried_operations += 1

    def record_failure(self, operation_name: str):
        """Record a run that ended with a terminal error."""
        with self._lock:
            self._failed_operations += 1

    def record_cancelled(self, operation_name: str):
        """Record a run that was cancelled by its caller."""
        with self._lock:
            self._cancelled_operations += 1

    def increment_total_operations(self):
        """Increment total operations counter"""
        with self._lock:
            self._total_operations += 1

    def get_summary(self) -> Dict:
        """
        Get summary of error metrics.

        Returns:
            Dictionary containing error statistics
        """
        with self._lock:
            elapsed_time = time.time() - self._start_time

            return {
                'elapsed_time_seconds': elapsed_time,
                'total_operations': self._total_operations,
                'successful_operations': self._successful_operations,
                'failed_operations': self._failed_operations,
                'cancelled_operations': self._cancelled_operations,
                'retried_operations': self._retried_operations,
                'success_rate': (
                    self._successful_operations / self._total_operations * 100
                    if self._total_operations > 0 else 0.0
                ),
                'retry_rate': (
                    self._retried_operations / self._total_operations * 100
                    if self._total_operations > 0 else 0.0
                ),
                'errors_by_category': dict(self._errors_by_category),
                'errors_by_operation': dict(self._errors_by_operation),
                'total_errors': sum(self._errors_by_category.values()),
                'recent_errors': list(self._error_details[-10:])
            }

    def get_detailed_errors(self, limit: int = 100) -> List[Dict]:
        """Get the most recent ``limit`` error records."""
        with self._lock:
            return list(self._error_details[-limit:]) if limit > 0 else []

    def reset(self):
        """Reset all metrics"""
        with self._lock:
            self._errors_by_category.clear()
            self._errors_by_operation.clear()
            self._error_details.clear()
            self._start_time = time.time()
            self._total_operations = 0
            self._successful_operations = 0
            self._retried_operations = 0
            self._failed_operations = 0
            self._cancelled_operations = 0

    def to_json(self, indent: int = 2) -> str:
        """Export the summary as a JSON string."""
        return json.dumps(self.get_summary(), indent=indent)

    def print_summary(self):
        """Print formatted summary of metrics"""
        summary = self.get_summary()

        print("\n" + "=" * 80)
        print("RETRY METRICS SUMMARY")
        print("=" * 80)
        print(f"Elapsed Time: {summary['elapsed_time_seconds']:.2f}s")
        print(f"Total Operations: {summary['total_operations']}")
        print(f"Successful: {summary['successful_operations']} ({summary['success_rate']:.1f}%)")
        print(f"Failed: {summary['failed_operations']}")
        print(f"Cancelled: {summary['cancelled_operations']}")
        print(f"Retried: {summary['retried_operations']} ({summary['retry_rate']:.1f}%)")
        print(f"Total Errors: {summary['total_errors']}")
        print()

        if summary['errors_by_category']:
            print("Errors by Category:")
            for category, count in sorted(
                summary['errors_by_category'].items(),
                key=lambda x: x[1],
                reverse=True
            ):
                print(f"  {category}: {count}")
            print()

        if summary['errors_by_operation']:
            print("Errors by Operation:")
            for operation_name, count in sorted(
                summary['errors_by_operation'].items(),
                key=lambda x: x[1],
                reverse=True
            ):
                print(f"  {operation_name}: {count}")
            print()

        if summary['recent_errors']:
            print("Recent Errors (last 10):")
            for error in summary['recent_errors']:
                print(f"  [{error['timestamp']}] {error['category']} in {error['operation_name']} "
                      f"(attempt {error['attempt']})")
                print(f"    {error['error_message']}")
            print()

        print("=" * 80)


_global_metrics = None
_metrics_lock = threading.Lock()


def get_global_metrics() -> ErrorMetrics:
    """Get or create global error metrics instance"""
    global _global_metrics
    with _metrics_lock:
        if _global_metrics is None:
            _global_metrics = ErrorMetrics()
        return _global_metrics
