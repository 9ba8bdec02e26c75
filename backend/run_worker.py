"""Run the scheduled-task worker as a standalone process."""

import logging
import time

from app.core.metrics import WORKER_UP_GAUGE
from app.services.task_scheduler import task_worker
from app.services import contest_service  # noqa: F401  registers quiz.auto_submit


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    task_worker.start()
    WORKER_UP_GAUGE.set(1)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        task_worker.stop()
        WORKER_UP_GAUGE.set(0)


if __name__ == "__main__":
    main()
