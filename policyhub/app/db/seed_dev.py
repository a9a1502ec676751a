"""Dev seeding helper - a live Terms of Service document."""

from policyhub.app.config import get_settings
from policyhub.app.db.context import RequestContext
from policyhub.app.lifecycle.errors import NotFoundError
from policyhub.app.lifecycle.service import PolicyService
from policyhub.app.models.common import VersionStatus
from policyhub.app.models.policies import DocumentDraft, DocumentView, VersionDraft

DEV_TERMS_SLUG = "terms-of-service"

DEV_TERMS_CONTENT = """# Terms of Service

By creating an account you agree to use the marketplace lawfully, to keep your
profile accurate, and to settle disputes through the platform first.
"""


def seed_dev_policies(service: PolicyService, ctx: RequestContext) -> DocumentView:
    """Seed an active Terms of Service document.

    This function is idempotent - safe to run multiple times. If the slug
    already exists the stored document is returned untouched.
    """
    try:
        existing = service.get_document(DEV_TERMS_SLUG, include_versions=True, use_cache=False)
        print(f"Dev policy already exists: {existing.document.title}")
        return existing
    except NotFoundError:
        pass

    print(f"Creating dev policy '{DEV_TERMS_SLUG}'...")
    document = service.create_document(
        DocumentDraft(
            title="Terms of Service",
            slug=DEV_TERMS_SLUG,
            category="terms",
            summary="Rules for using the marketplace",
            metadata={"contactEmail": "legal@policyhub.local", "reviewCadenceDays": 365},
        ),
        ctx,
    ).document
    view = service.create_version(
        document.id,
        VersionDraft(content=DEV_TERMS_CONTENT, change_summary="Initial version"),
        ctx,
    )
    version_id = view.versions[0].id
    for target in (VersionStatus.in_review, VersionStatus.approved):
        service.transition_version(document.id, version_id, target, ctx)
    service.publish_version(document.id, version_id, ctx)
    view = service.activate_version(document.id, version_id, ctx)
    print("Dev seeding complete")
    return view


if __name__ == "__main__":
    from policyhub.app.api.dependencies import build_policy_service

    settings = get_settings()
    seed_dev_policies(build_policy_service(settings), RequestContext(actor_id=settings.dev_actor_id))
