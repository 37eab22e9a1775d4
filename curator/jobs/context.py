"""Per-job execution context carrying the tenant scope explicitly."""

from dataclasses import dataclass

from curator.observability.logging import bind_context


@dataclass
class JobContext:
    """
    Passed to every handler in place of ambient "current tenant" state.

    The runner creates one per job and clears it (and the bound log
    context) in a finally block, so a worker never carries a tenant scope
    into the next job.
    """

    job_id: str
    job_name: str
    queue: str
    attempt: int = 0
    tenant_id: int | None = None
    site_id: int | None = None

    def bind_tenant(self, tenant_id: int | None, site_id: int | None = None) -> None:
        """Scope the rest of the job to a tenant once its record is loaded."""
        self.tenant_id = tenant_id
        self.site_id = site_id
        bind_context(tenant_id=tenant_id, site_id=site_id)

    def clear(self) -> None:
        self.tenant_id = None
        self.site_id = None
