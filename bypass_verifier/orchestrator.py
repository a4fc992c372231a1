"""
TestOrchestrator - runs a probe suite against every selected profile.

For each profile, strictly one after another:

    start engine -> settle -> probes in parallel -> stop engine -> settle

A profile whose engine fails to start gets a single Init result and the run
moves on without settling or probing. The engine is stopped after probing no
matter how probing ends (normal completion, a probe bug, cancellation).
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from .config import GENERAL_HOSTLIST, VerifierConfig
from .catalog import ProfileCatalog
from .domain_lists import DomainListManager
from .engine.supervisor import ProcessSupervisor
from .errors import EngineStartError, NoProfilesError, TestRunCancelled
from .models import Profile, ProbeKind, ProbeResult, TestRun, TestSuite
from .probes.clients import ProbeClients
from .probes.runner import ProbeRunner
from .probes.targets import expand_dpi_targets, standard_targets

LOG = logging.getLogger(__name__)

ProfileSelection = Optional[Sequence[Union[str, Profile]]]
ProbeFactory = Callable[[], Awaitable[ProbeResult]]

STANDARD_HTTP_KINDS = (ProbeKind.HTTP, ProbeKind.TLS12, ProbeKind.TLS13)


class _PendingProbe:
    """A probe that has not run yet, with enough identity to report a crash."""

    __slots__ = ("profile_name", "target_name", "kind", "factory")

    def __init__(self, profile_name: str, target_name: str, kind: ProbeKind, factory: ProbeFactory):
        self.profile_name = profile_name
        self.target_name = target_name
        self.kind = kind
        self.factory = factory


class TestOrchestrator:
    """
    Drives the supervisor and probe runners through a whole test run.

    Progress callbacks (all optional, exceptions are logged and ignored):
    - on_profile_started(profile, index, total)
    - on_profile_finished(profile, results)
    - on_probe_finished(result)
    """

    __test__ = False

    def __init__(
        self,
        config: VerifierConfig,
        supervisor: ProcessSupervisor,
        catalog: ProfileCatalog,
        clients: Optional[ProbeClients] = None,
        runner: Optional[ProbeRunner] = None,
        domain_lists: Optional[DomainListManager] = None,
    ):
        self.config = config
        self.supervisor = supervisor
        self.catalog = catalog
        self.clients = clients if clients is not None else ProbeClients()
        self.runner = runner if runner is not None else ProbeRunner(config, self.clients)
        self.domain_lists = domain_lists

        self.on_profile_started: Optional[Callable[[Profile, int, int], None]] = None
        self.on_profile_finished: Optional[Callable[[Profile, List[ProbeResult]], None]] = None
        self.on_probe_finished: Optional[Callable[[ProbeResult], None]] = None

    # --- profile selection ---------------------------------------------------

    def resolve_profiles(self, profiles: ProfileSelection = None) -> List[Profile]:
        """
        All catalog profiles, or the caller's subset.

        Names are looked up case-insensitively; unknown names are logged and
        skipped. Raises NoProfilesError if nothing is left to test.
        """
        if profiles is None:
            selected = self.catalog.list_available_profiles()
        else:
            selected = []
            for item in profiles:
                if isinstance(item, Profile):
                    selected.append(item)
                    continue
                profile = self.catalog.get_profile_by_name(item)
                if profile is None:
                    LOG.warning(f"Profile '{item}' not found in catalog, skipping")
                    continue
                selected.append(profile)

        if not selected:
            raise NoProfilesError("No profiles available for testing")
        return selected

    # --- run -----------------------------------------------------------------

    async def run_tests(
        self,
        suite: TestSuite,
        profiles: ProfileSelection = None,
        domain: Optional[str] = None,
        custom_dpi_url: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
        check_domain_blocked: bool = False,
        add_domain_to_list: bool = False,
    ) -> TestRun:
        """
        Run `suite` against the selected profiles.

        Args:
            suite: STANDARD (one domain via HTTP/TLS1.2/TLS1.3/ping) or DPI
            profiles: None for every catalog profile, otherwise names or Profiles
            domain: required for STANDARD
            custom_dpi_url: DPI only; replaces the registry with this URL
            cancel_event: set it to abort; the engine is stopped first
            check_domain_blocked: STANDARD only; direct GET before any engine starts
            add_domain_to_list: STANDARD only; append the domain to the general host list

        Raises:
            NoProfilesError: nothing to test
            ValueError: STANDARD without a domain
            TestRunCancelled: cancel_event was set
        """
        if suite is TestSuite.STANDARD and not (domain and domain.strip()):
            raise ValueError("Standard test requires a domain")

        selected = self.resolve_profiles(profiles)
        run = TestRun(suite=suite, profiles=[p.name for p in selected])

        if self.supervisor.is_running():
            LOG.info("Stopping running engine before the test run")
            await self.supervisor.aclose()

        owns_clients = not self.clients.is_open
        if owns_clients:
            await self.clients.open()
        try:
            if suite is TestSuite.STANDARD:
                target = standard_targets(domain)[0]
                run.domain = target.host
                if check_domain_blocked:
                    blocked = await self.runner.is_domain_blocked(target.url)
                    run.domain_reachable_without_engine = not blocked
                if add_domain_to_list and self.domain_lists is not None:
                    await self._add_to_hostlist(target.host)

            LOG.info(f"Starting {suite.value} test of {len(selected)} profile(s)")
            for index, profile in enumerate(selected):
                self._check_cancelled(cancel_event)
                self._notify(self.on_profile_started, profile, index, len(selected))
                batch = self._build_batch(suite, profile, run.domain, custom_dpi_url)
                results = await self._test_profile(profile, batch, cancel_event)
                run.results.extend(results)
                self._notify(self.on_profile_finished, profile, results)
        finally:
            await self.supervisor.aclose()
            if owns_clients:
                await self.clients.close()
            run.finished_at = time.time()

        LOG.info(
            f"{suite.value} test finished: {len(run.results)} results "
            f"in {run.duration:.1f}s"
        )
        return run

    async def _add_to_hostlist(self, host: str) -> None:
        path = self.config.lists_dir / GENERAL_HOSTLIST
        try:
            await self.domain_lists.add_domain(path, host)
        except (ValueError, OSError) as e:
            LOG.warning(f"Could not add '{host}' to {path.name}: {e}")

    def _build_batch(
        self,
        suite: TestSuite,
        profile: Profile,
        domain: Optional[str],
        custom_dpi_url: Optional[str],
    ) -> List[_PendingProbe]:
        name = profile.name
        runner = self.runner
        batch: List[_PendingProbe] = []

        if suite is TestSuite.STANDARD:
            for target in standard_targets(domain):
                for kind in STANDARD_HTTP_KINDS:
                    batch.append(_PendingProbe(
                        name, target.url, kind,
                        lambda url=target.url, kind=kind: runner.http(name, url, kind),
                    ))
                batch.append(_PendingProbe(
                    name, target.host, ProbeKind.PING,
                    lambda host=target.host: runner.ping(name, host),
                ))
            return batch

        for target_name, target in expand_dpi_targets(custom_url=custom_dpi_url):
            batch.append(_PendingProbe(
                name, target_name, ProbeKind.DPI,
                lambda tn=target_name, t=target: runner.dpi(name, tn, t),
            ))
        return batch

    async def _test_profile(
        self,
        profile: Profile,
        batch: List[_PendingProbe],
        cancel_event: Optional[asyncio.Event],
    ) -> List[ProbeResult]:
        try:
            handle = await self.supervisor.start(profile)
        except EngineStartError as e:
            LOG.error(f"Profile '{profile.name}' could not be started: {e}")
            result = ProbeResult.init_failure(profile.name, f"Engine init failed: {e}")
            self._notify(self.on_probe_finished, result)
            return [result]

        try:
            await self._settle(self.config.settle_after_start, cancel_event)
            results = await self._run_batch(batch, cancel_event)
        finally:
            await self.supervisor.stop(handle)

        await self._settle(self.config.settle_after_stop, cancel_event)
        successes = sum(1 for r in results if r.success)
        LOG.info(f"Profile '{profile.name}': {successes}/{len(results)} probes succeeded")
        return results

    async def _run_batch(
        self,
        batch: List[_PendingProbe],
        cancel_event: Optional[asyncio.Event],
    ) -> List[ProbeResult]:
        """Run all probes concurrently; results in submission order."""
        tasks = [asyncio.ensure_future(self._guarded(probe)) for probe in batch]
        cancel_waiter = asyncio.ensure_future(cancel_event.wait()) if cancel_event else None
        try:
            pending = set(tasks)
            while pending:
                waiting = pending | {cancel_waiter} if cancel_waiter else pending
                await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)
                self._check_cancelled(cancel_event)
                pending = {t for t in pending if not t.done()}
        finally:
            leftovers = [t for t in tasks if not t.done()]
            if cancel_waiter is not None:
                leftovers.append(cancel_waiter)
            for task in leftovers:
                task.cancel()
            if leftovers:
                await asyncio.gather(*leftovers, return_exceptions=True)
        return [t.result() for t in tasks]

    async def _guarded(self, probe: _PendingProbe) -> ProbeResult:
        try:
            result = await probe.factory()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            LOG.exception(f"Probe {probe.kind.value} {probe.target_name} crashed")
            result = ProbeResult(
                profile_name=probe.profile_name,
                target_name=probe.target_name,
                kind=probe.kind,
                success=False,
                message=f"Error: {type(e).__name__}: {e}",
            )
        self._notify(self.on_probe_finished, result)
        return result

    async def _settle(self, delay: float, cancel_event: Optional[asyncio.Event]) -> None:
        self._check_cancelled(cancel_event)
        if delay <= 0:
            return
        if cancel_event is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self._check_cancelled(cancel_event)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise TestRunCancelled("Test run cancelled")

    @staticmethod
    def _notify(callback: Optional[Callable], *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            LOG.exception("Progress callback failed")
