"""InstanceLifecycle implementations.

InMemoryLifecycle applies requests synchronously and is what simulations
and tests drive. ProviderLifecycle turns the same fire-and-forget requests
into retried async calls against a real InstanceProvider.
"""

from __future__ import annotations

import asyncio
import itertools
from collections import Counter
from collections.abc import Coroutine, Iterable, Sequence
from typing import Any

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from vmscaler.api.model import Instance, InstanceId, WorkloadKind
from vmscaler.api.protocols import InstanceProvider
from vmscaler.core.exceptions import InvariantViolation, ProvisioningError
from vmscaler.observability.logger import logger

log = logger.bind(component="lifecycle")


class InMemoryLifecycle:
    """In-process pool registry; creations and destructions take effect at once.

    Kinds persist with an empty pool once registered, so a kind whose last
    instance was destroyed is still visited (and recreated) on later ticks.
    """

    def __init__(self, kinds: Iterable[WorkloadKind] = ()) -> None:
        self._pools: dict[WorkloadKind, list[Instance]] = {k: [] for k in kinds}
        self._ids = itertools.count()
        self.created: list[Instance] = []
        self.destroyed: list[Instance] = []

    def register_kind(self, kind: WorkloadKind) -> None:
        self._pools.setdefault(kind, [])

    def kinds(self) -> Sequence[WorkloadKind]:
        return tuple(self._pools)

    def pool_for(self, kind: WorkloadKind) -> Sequence[Instance]:
        return tuple(self._pools[kind])

    def request_create(self, kind: WorkloadKind) -> None:
        instance = Instance(id=f"{kind}-{next(self._ids)}", kind=kind)
        self._pools.setdefault(kind, []).append(instance)
        self.created.append(instance)

    def request_destroy(self, instance: Instance) -> None:
        pool = self._pools.get(instance.kind, [])
        if instance not in pool:
            raise InvariantViolation(f"Cannot destroy unknown instance {instance.id}")
        pool.remove(instance)
        self.destroyed.append(instance)

    def add(self, instance: Instance) -> Instance:
        """Place an existing instance in its kind's pool."""
        self._pools.setdefault(instance.kind, []).append(instance)
        return instance


class ProviderLifecycle:
    """Executes lifecycle requests against an async provider with retries.

    Requests return immediately; the work runs as tasks on the running
    event loop. A requested instance joins its pool at once as a
    placeholder, swapped for the provisioned instance when the provider
    answers, so later ticks see it and do not ask again. Destroying a
    placeholder cancels the request; if the provider still delivers, the
    instance is terminated. Failures that outlive the retry budget drop
    the placeholder and are logged and kept in ``failures``.
    """

    def __init__(
        self,
        provider: InstanceProvider,
        kinds: Iterable[WorkloadKind] = (),
        *,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
    ) -> None:
        self._provider = provider
        self._pools: dict[WorkloadKind, list[Instance]] = {k: [] for k in kinds}
        self._pending: Counter[WorkloadKind] = Counter()
        self._placeholders: set[InstanceId] = set()
        self._cancelled: set[InstanceId] = set()
        self._ids = itertools.count()
        self._tasks: set[asyncio.Task[None]] = set()
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay
        self.failures: list[ProvisioningError] = []

    def kinds(self) -> Sequence[WorkloadKind]:
        return tuple(self._pools)

    def pool_for(self, kind: WorkloadKind) -> Sequence[Instance]:
        return tuple(self._pools[kind])

    def pending(self, kind: WorkloadKind) -> int:
        return self._pending[kind]

    def is_provisioning(self, instance: Instance) -> bool:
        return instance.id in self._placeholders

    def request_create(self, kind: WorkloadKind) -> None:
        placeholder = Instance(id=f"{kind}-provisioning-{next(self._ids)}", kind=kind)
        self._pools.setdefault(kind, []).append(placeholder)
        self._placeholders.add(placeholder.id)
        self._pending[kind] += 1
        self._spawn(self._provision(placeholder))

    def request_destroy(self, instance: Instance) -> None:
        pool = self._pools.get(instance.kind, [])
        if instance not in pool:
            raise InvariantViolation(f"Cannot destroy unknown instance {instance.id}")
        pool.remove(instance)
        if instance.id in self._placeholders:
            self._cancelled.add(instance.id)
            log.info("Cancelled provisioning of {id}", id=instance.id)
            return
        self._spawn(self._terminate(instance))

    async def drain(self) -> None:
        """Wait until every in-flight request has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _retrying(self, what: str) -> Any:
        def before_sleep(state: Any) -> None:
            log.warning(
                "{what} attempt {n}/{max} failed: {err}",
                what=what,
                n=state.attempt_number,
                max=self._max_attempts,
                err=state.outcome.exception(),
            )

        return retry(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._base_delay, max=self._max_delay),
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep,
            reraise=True,
        )

    async def _provision(self, placeholder: Instance) -> None:
        kind = placeholder.kind

        @self._retrying(f"Provisioning {kind}")
        async def _attempt() -> Instance:
            return await self._provider.provision(kind)

        pool = self._pools.setdefault(kind, [])
        try:
            instance = await _attempt()
        except Exception as e:
            error = ProvisioningError(kind, str(e))
            log.error("{err}", err=error)
            self.failures.append(error)
            if placeholder in pool:
                pool.remove(placeholder)
        else:
            if instance.kind != kind:
                error = ProvisioningError(kind, f"provider returned {instance.kind!r} instance")
                log.error("{err}", err=error)
                self.failures.append(error)
                if placeholder in pool:
                    pool.remove(placeholder)
            elif placeholder.id in self._cancelled:
                log.info("Provisioned {id} after cancellation, terminating", id=instance.id)
                self._spawn(self._terminate(instance))
            else:
                pool[pool.index(placeholder)] = instance
                log.info("Provisioned {id} for {kind}", id=instance.id, kind=kind)
        finally:
            self._placeholders.discard(placeholder.id)
            self._cancelled.discard(placeholder.id)
            self._pending[kind] -= 1

    async def _terminate(self, instance: Instance) -> None:
        @self._retrying(f"Terminating {instance.id}")
        async def _attempt() -> None:
            await self._provider.terminate(instance)

        try:
            await _attempt()
        except Exception as e:
            error = ProvisioningError(instance.kind, f"terminating {instance.id}: {e}")
            log.error("{err}", err=error)
            self.failures.append(error)
        else:
            log.info("Terminated {id}", id=instance.id)
