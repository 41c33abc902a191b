"""Task Queue - планировщик задач с ограничением параллелизма.

Берёт задачи в порядке FIFO, запускает pipeline и передаёт каждое
обновление в TaskStateManager. Поддерживает retry и кооперативную отмену.

Жизненный цикл задачи в очереди:
    queued -> processing -> {completed, failed, cancelled}

Example:
    >>> queue = TaskQueue(pipeline, state_manager, max_concurrent=1)
    >>> queue.enqueue_task(task)
    >>> await queue.wait_idle()

"""

import asyncio
import contextlib
from collections import Counter, deque
from enum import Enum

from song_agent.config import settings
from song_agent.models.a2a import (
    Message,
    QueueStatus,
    Task,
    TaskArtifact,
    TaskContext,
    TaskState,
    agent_message,
)
from song_agent.services.generation.pipeline import ContentPipeline
from song_agent.services.task.task_state_manager import TaskStateManager
from song_agent.shared.errors import InvalidTransitionError, TaskNotFoundError
from song_agent.utils.logging import get_logger

logger = get_logger()

NO_FINAL_STATUS_MESSAGE = "pipeline finished without a final status"
CANCELLED_MESSAGE = "Task cancelled by user"


class TaskOutcome(str, Enum):
    """Итог обработки задачи очередью."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_OUTCOME_BY_STATE = {
    TaskState.COMPLETED: TaskOutcome.COMPLETED,
    TaskState.INPUT_REQUIRED: TaskOutcome.COMPLETED,
    TaskState.FAILED: TaskOutcome.FAILED,
    TaskState.CANCELLED: TaskOutcome.CANCELLED,
}


class _RelayStopped(Exception):
    """Задача стала терминальной вне очереди, обновления больше не принимаются."""


class TaskQueue:
    """Очередь задач с ограниченным числом одновременных обработок.

    Attributes:
        pipeline: Pipeline генерации контента
        state_manager: Manager переходов состояний
        max_concurrent: Максимум задач в обработке
        max_retries: Количество повторов при сбое до первого обновления
        retry_delay: Пауза между попытками (секунды)

    """

    def __init__(
        self,
        pipeline: ContentPipeline,
        state_manager: TaskStateManager,
        max_concurrent: int | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        """Инициализировать TaskQueue.

        Args:
            pipeline: ContentPipeline instance
            state_manager: TaskStateManager instance
            max_concurrent: Лимит параллелизма (defaults из settings)
            max_retries: Количество повторов (defaults из settings)
            retry_delay: Пауза между попытками (defaults из settings)

        """
        self.pipeline = pipeline
        self.state_manager = state_manager
        self.max_concurrent = max_concurrent if max_concurrent is not None else settings.max_concurrent_tasks
        self.max_retries = max_retries if max_retries is not None else settings.task_max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.task_retry_delay_seconds

        if self.max_concurrent < 1:
            msg = f"max_concurrent должен быть >= 1, получено: {self.max_concurrent}"
            raise ValueError(msg)

        self._pending: deque[Task] = deque()
        self._processing: dict[str, asyncio.Task[None]] = {}
        self._cancel_requested: set[str] = set()
        self._outcomes: dict[str, TaskOutcome] = {}
        self._idle = asyncio.Event()
        self._idle.set()

        logger.info(
            "TaskQueue инициализирован",
            max_concurrent=self.max_concurrent,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )

    # =================================================================
    # Public API
    # =================================================================

    def enqueue_task(self, task: Task) -> bool:
        """Добавить задачу в очередь.

        Повторная постановка задачи, которая уже ждёт или обрабатывается,
        игнорируется.

        Args:
            task: Задача (должна быть уже сохранена в store)

        Returns:
            True если задача добавлена

        """
        if self._is_queued(task.id) or task.id in self._processing:
            logger.debug("Задача уже в очереди", task_id=task.id)
            return False

        self._pending.append(task)
        self._outcomes.pop(task.id, None)
        self._idle.clear()

        logger.info("Задача добавлена в очередь", task_id=task.id, queue_size=len(self._pending))

        self._start_next()
        return True

    def cancel_task(self, task_id: str) -> bool:
        """Отменить задачу.

        Ожидающая задача удаляется из очереди и сразу помечается CANCELLED.
        Для обрабатываемой выставляется флаг, который pipeline проверяет
        через TaskContext.is_cancelled().

        Args:
            task_id: ID задачи

        Returns:
            False если задача неизвестна очереди или уже обработана

        """
        for task in self._pending:
            if task.id == task_id:
                self._pending.remove(task)
                self._outcomes[task_id] = TaskOutcome.CANCELLED
                self.state_manager.mark_as_cancelled(task_id)
                self._update_idle()

                logger.info("Задача отменена до начала обработки", task_id=task_id)
                return True

        if task_id in self._processing:
            self._cancel_requested.add(task_id)

            logger.info("Запрошена отмена обрабатываемой задачи", task_id=task_id)
            return True

        return False

    def get_queue_status(self) -> QueueStatus:
        """Счётчики очереди."""
        outcomes = Counter(self._outcomes.values())
        return QueueStatus(
            queued_tasks=len(self._pending),
            processing_tasks=len(self._processing),
            completed_tasks=outcomes[TaskOutcome.COMPLETED],
            failed_tasks=outcomes[TaskOutcome.FAILED],
            cancelled_tasks=outcomes[TaskOutcome.CANCELLED],
        )

    def is_cancel_requested(self, task_id: str) -> bool:
        """Запрошена ли отмена обрабатываемой задачи."""
        return task_id in self._cancel_requested

    async def wait_idle(self) -> None:
        """Дождаться, пока очередь и обработка опустеют."""
        await self._idle.wait()

    async def stop(self) -> None:
        """Прервать обработку (shutdown)."""
        self._pending.clear()
        runners = list(self._processing.values())

        for runner in runners:
            runner.cancel()

        for runner in runners:
            with contextlib.suppress(asyncio.CancelledError):
                await runner

        # runner, отменённый до первого шага, не доходит до finally в _run
        self._processing.clear()
        self._cancel_requested.clear()
        self._update_idle()

        logger.info("TaskQueue остановлен", cancelled_runs=len(runners))

    # =================================================================
    # Scheduling
    # =================================================================

    def _is_queued(self, task_id: str) -> bool:
        return any(task.id == task_id for task in self._pending)

    def _start_next(self) -> None:
        while self._pending and len(self._processing) < self.max_concurrent:
            task = self._pending.popleft()
            self._processing[task.id] = asyncio.create_task(
                self._run(task),
                name=f"song-task-{task.id}",
            )

            logger.debug(
                "Задача взята в обработку",
                task_id=task.id,
                processing=len(self._processing),
                queued=len(self._pending),
            )

        self._update_idle()

    def _update_idle(self) -> None:
        if not self._pending and not self._processing:
            self._idle.set()

    async def _run(self, task: Task) -> None:
        """Обработать задачу и освободить слот."""
        logger.info("Начало обработки задачи", task_id=task.id)

        try:
            outcome = await self._execute(task)
            self._outcomes[task.id] = outcome

            logger.info("Обработка задачи завершена", task_id=task.id, outcome=outcome.value)

        except asyncio.CancelledError:
            self._outcomes[task.id] = TaskOutcome.CANCELLED
            raise

        except Exception as e:
            logger.exception("Критическая ошибка обработки задачи", task_id=task.id, error=str(e))
            self._outcomes[task.id] = self._fail(task.id, str(e) or type(e).__name__)

        finally:
            self._processing.pop(task.id, None)
            self._cancel_requested.discard(task.id)
            self._start_next()

    # =================================================================
    # Execution
    # =================================================================

    async def _execute(self, task: Task) -> TaskOutcome:
        """Прогнать pipeline с retry.

        Повтор выполняется только если pipeline упал до первого обновления.
        """
        context = TaskContext(task=task, is_cancelled=lambda: self.is_cancel_requested(task.id))
        attempt = 0

        while True:
            attempt += 1
            updates = None
            progressed = False

            try:
                updates = self.pipeline.handle_task(context)
                async for update in updates:
                    progressed = True
                    state = self._relay(task.id, update.state, update.message, update.artifacts)

                    if state is not None and state.is_final:
                        return _OUTCOME_BY_STATE[state]

            except _RelayStopped:
                return self._current_outcome(task.id)

            except Exception as e:
                error_text = str(e) or type(e).__name__

                if not progressed and attempt <= self.max_retries:
                    logger.warning(
                        "Pipeline failed, повтор",
                        task_id=task.id,
                        attempt=attempt,
                        max_retries=self.max_retries,
                        error=error_text,
                    )
                    if not self.is_cancel_requested(task.id):
                        await asyncio.sleep(self.retry_delay)
                    if self.is_cancel_requested(task.id):
                        return self._cancel(task.id)
                    continue

                logger.error(
                    "Pipeline failed",
                    task_id=task.id,
                    attempts=attempt,
                    progressed=progressed,
                    error=error_text,
                )
                return self._fail(task.id, error_text)

            finally:
                aclose = getattr(updates, "aclose", None)
                if aclose is not None:
                    await aclose()

            logger.warning("Pipeline завершился без финального статуса", task_id=task.id)
            return self._fail(task.id, NO_FINAL_STATUS_MESSAGE)

    def _relay(
        self,
        task_id: str,
        state: TaskState,
        message: Message | None = None,
        artifacts: list[TaskArtifact] | None = None,
    ) -> TaskState | None:
        """Передать обновление pipeline в state manager.

        SUBMITTED -> WORKING пишется неявно перед первым обновлением,
        которое не является WORKING или CANCELLED.

        Returns:
            Текущее состояние задачи после записи

        Raises:
            _RelayStopped: Если задача уже терминальна или удалена

        """
        try:
            current = self.state_manager.get_task(task_id)
            if current is None:
                raise TaskNotFoundError(task_id)

            if current.status.state == TaskState.SUBMITTED and state not in (
                TaskState.WORKING,
                TaskState.CANCELLED,
            ):
                self.state_manager.mark_as_working(task_id)

            self.state_manager.apply_update(task_id, state, message, artifacts)

        except (InvalidTransitionError, TaskNotFoundError) as e:
            logger.warning(
                "Обновление pipeline отклонено, обработка остановлена",
                task_id=task_id,
                state=state.value,
                error=e.message,
            )
            raise _RelayStopped(task_id) from e

        return state

    def _fail(self, task_id: str, error_text: str) -> TaskOutcome:
        try:
            self._relay(task_id, TaskState.FAILED, agent_message(error_text))
        except _RelayStopped:
            return self._current_outcome(task_id)
        return TaskOutcome.FAILED

    def _cancel(self, task_id: str) -> TaskOutcome:
        logger.info("Задача отменена между попытками", task_id=task_id)
        try:
            self._relay(task_id, TaskState.CANCELLED, agent_message(CANCELLED_MESSAGE))
        except _RelayStopped:
            return self._current_outcome(task_id)
        return TaskOutcome.CANCELLED

    def _current_outcome(self, task_id: str) -> TaskOutcome:
        task = self.state_manager.get_task(task_id)
        if task is None:
            return TaskOutcome.FAILED
        return _OUTCOME_BY_STATE.get(task.status.state, TaskOutcome.FAILED)
