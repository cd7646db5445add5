import concurrent.futures
from typing import List, Callable, Any, Dict, Sequence, Tuple
import logging
import time

logger = logging.getLogger(__name__)


def _item_name(item: Any) -> str:
    return getattr(item, 'name', None) or str(item)[:50]


class ParallelProcessor:
    """Process multiple items in parallel using ThreadPoolExecutor."""

    def __init__(self, max_workers: int = 4):
        """Initialize with maximum number of worker threads."""
        self.max_workers = max_workers

    def process_batch(self, items: Sequence[Any], process_func: Callable) -> Tuple[List[Any], Dict[str, Any]]:
        """
        Process a batch of items in parallel.

        Args:
            items: Items (file paths, critique texts, ...) to process
            process_func: Function to process each item

        Returns:
            Tuple of (results list in input order, statistics dict). A failed
            item's slot holds {'item': name, 'error': message}.
        """
        start_time = time.time()
        results: List[Any] = [None] * len(items)
        failed = 0

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {executor.submit(process_func, item): i for i, item in enumerate(items)}

            for future in concurrent.futures.as_completed(future_to_index):
                index = future_to_index[future]
                name = _item_name(items[index])
                try:
                    results[index] = future.result()
                    logger.info(f"Successfully processed {name}")
                except Exception as e:
                    logger.error(f"Error processing {name}: {str(e)}")
                    failed += 1
                    results[index] = {
                        'item': name,
                        'error': str(e)
                    }

        end_time = time.time()
        stats = {
            'total_items': len(items),
            'successful': len(items) - failed,
            'failed': failed,
            'processing_time': end_time - start_time
        }

        return results, stats
