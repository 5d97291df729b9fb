import concurrent.futures
import dataclasses
import threading
import typing

import aurmgr.logging
from aurmgr import nonempty
from aurmgr.models import pkg as pkg_models


class LookupResult(typing.NamedTuple):
    unresolved: frozenset[pkg_models.PkgName]
    resolved: frozenset[pkg_models.Package]


# None signals that the lookup could not be completed at all, e.g. the source is unreachable.
# This is different from a successful lookup that found nothing.
LookupFn = typing.Callable[[nonempty.NonEmptySet[pkg_models.PkgName]], LookupResult | None]


class _Pending:
    """
    A fetch in flight for one or more names, which other lookups may wait on.
    """

    def __init__(self) -> None:
        self.done = threading.Event()
        self.failed = False


class PkgCache:
    """
    A package cache shared by every lookup against one source.

    It is safe to use from several threads. Each name is populated at most once: a lookup for a
    name that another thread is already fetching waits for that fetch instead of issuing its own.
    Only successfully resolved packages are cached, so unknown names are asked for again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pkgs: dict[pkg_models.PkgName, pkg_models.Package] = {}
        self._pending: dict[pkg_models.PkgName, _Pending] = {}

    def get(self, name: pkg_models.PkgName) -> pkg_models.Package | None:
        with self._lock:
            return self._pkgs.get(name)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._pkgs

    def __len__(self) -> int:
        with self._lock:
            return len(self._pkgs)

    def fetch_through(
        self,
        names: nonempty.NonEmptySet[pkg_models.PkgName],
        fetch: LookupFn,
    ) -> LookupResult | None:
        """
        Serve names from the cache, calling fetch only for names nobody has fetched yet.
        """
        with self._lock:
            resolved: set[pkg_models.Package] = {
                self._pkgs[name] for name in names if name in self._pkgs
            }
            waiting = {
                name: self._pending[name]
                for name in names
                if name not in self._pkgs and name in self._pending
            }
            claimed = [
                name for name in names if name not in self._pkgs and name not in self._pending
            ]
            claim = _Pending()
            for name in claimed:
                self._pending[name] = claim

        claimed_set = nonempty.nonempty_set(claimed)
        if claimed_set is not None:
            result = None
            try:
                result = fetch(claimed_set)
            finally:
                with self._lock:
                    if result is None:
                        claim.failed = True
                    else:
                        for pkg in result.resolved:
                            _ = self._pkgs.setdefault(pkg_models.package_name(pkg), pkg)
                    for name in claimed_set:
                        del self._pending[name]
                claim.done.set()

            if result is None:
                return None
            resolved.update(result.resolved)

        for name, pending in waiting.items():
            _ = pending.done.wait()
            if pending.failed:
                return None
            pkg = self.get(name)
            if pkg is not None:
                resolved.add(pkg)

        resolved_names = {pkg_models.package_name(pkg) for pkg in resolved}
        return LookupResult(
            unresolved=frozenset(name for name in names if name not in resolved_names),
            resolved=frozenset(resolved),
        )


@dataclasses.dataclass
class Repository:
    """
    A place packages may be fetched from. Packages are looked up in batches.

    Repositories are combined with `combine` or `cascade`. Each repository is responsible for its
    own caching; the cache of a combined repository is only there to satisfy the type.
    """

    name: str
    lookup_fn: LookupFn
    cache: PkgCache = dataclasses.field(default_factory=PkgCache)

    def lookup(self, names: nonempty.NonEmptySet[pkg_models.PkgName]) -> LookupResult | None:
        aurmgr.logging.debug("Looking up %d packages in %s", len(names), self.name)
        return self.lookup_fn(names)

    def cached_lookup(
        self, names: nonempty.NonEmptySet[pkg_models.PkgName], fetch: LookupFn
    ) -> LookupResult | None:
        """
        Answer from this repository's cache, calling fetch for the names it does not have yet.
        """
        return self.cache.fetch_through(names, fetch)


def cached_repository(name: str, fetch: LookupFn) -> Repository:
    """
    A repository that answers from its cache first and calls fetch for the rest.
    """

    def lookup(names: nonempty.NonEmptySet[pkg_models.PkgName]) -> LookupResult | None:
        return repository.cached_lookup(names, fetch)

    repository = Repository(name=name, lookup_fn=lookup)
    return repository


def combine(a: Repository, b: Repository) -> Repository:
    """
    Query a first, and b only for the names a could not resolve.
    A total failure of either repository is a total failure of the combination.
    """

    def lookup(names: nonempty.NonEmptySet[pkg_models.PkgName]) -> LookupResult | None:
        result = a.lookup(names)
        if result is None:
            return None

        unresolved = nonempty.nonempty_set(result.unresolved)
        if unresolved is None:
            return result

        fallback = b.lookup(unresolved)
        if fallback is None:
            return None

        return LookupResult(
            unresolved=fallback.unresolved, resolved=result.resolved | fallback.resolved
        )

    return Repository(name=f"{a.name}+{b.name}", lookup_fn=lookup, cache=a.cache)


def cascade(repositories: nonempty.NonEmptyList[Repository]) -> Repository:
    """
    Combine repositories in priority order, the first one being asked first.
    """
    combined = repositories[0]
    for repository in repositories[1:]:
        combined = combine(combined, repository)
    return combined


def with_timeout(repository: Repository, timeout: float) -> Repository:
    """
    Treat a lookup that takes longer than timeout seconds as a total failure of the repository.
    """

    def lookup(names: nonempty.NonEmptySet[pkg_models.PkgName]) -> LookupResult | None:
        executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        future = executor.submit(repository.lookup, names)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            aurmgr.logging.warning(
                "%s did not answer within %s seconds", repository.name, timeout
            )
            return None
        finally:
            # Never block on a lookup that timed out
            executor.shutdown(wait=False)

    return Repository(name=repository.name, lookup_fn=lookup, cache=repository.cache)
