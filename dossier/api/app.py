"""Application factory for the Dossier Falcon ASGI application.

This module provides ``create_app()`` which builds and configures the
Falcon ASGI application with health endpoints and, when an application
context is supplied, the domain endpoints for reports, exports,
deliveries, podcasts, templates, schedules, analytics, cleanup and the
Webex webhook.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create a full app with domain endpoints::

    from dossier.api.app import AppDependencies, create_app

    deps = AppDependencies(context=build_app_context(session_factory))
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon
import falcon.asgi

from dossier.api.config import ApiConfig
from dossier.api.errors import handle_dossier_error, handle_http_error
from dossier.api.health.resources import HealthResource, ReadyResource
from dossier.api.middleware import CallerIdentity, LifespanManager
from dossier.errors import DossierError

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from dossier.context import AppContext

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    context
        Application context holding every service and processor. When
        ``None`` only the health endpoints are registered.
    manage_lifespan
        Start and stop the background processors with the ASGI lifespan.
        Tests that drive processors by hand turn this off.
    engine
        Engine whose tables are created at startup and which is disposed
        at shutdown.
    config
        HTTP layer settings such as the admin allow-list.

    """

    context: AppContext | None = None
    manage_lifespan: bool = True
    engine: AsyncEngine | None = None
    config: ApiConfig = dc.field(default_factory=ApiConfig)


def _add_domain_routes(
    app: falcon.asgi.App, context: AppContext, config: ApiConfig
) -> None:
    from dossier.api.admin.resources import CleanupResource
    from dossier.api.analytics.resources import (
        DashboardResource,
        DistributionResource,
        TrendsResource,
    )
    from dossier.api.deliveries.resources import (
        DeliveryCollectionResource,
        DeliveryRetryResource,
        PodcastDeliveryRetryResource,
    )
    from dossier.api.exports.resources import (
        ExportCollectionResource,
        ExportDownloadResource,
    )
    from dossier.api.podcasts.resources import (
        PodcastAudioResource,
        PodcastQueueResource,
        PodcastResource,
    )
    from dossier.api.reports.resources import (
        ReportCollectionResource,
        ReportResource,
        ReportRetryResource,
        ReportStatusResource,
        WorkflowSectionsResource,
    )
    from dossier.api.schedules.resources import (
        NextRunsResource,
        ScheduleActivateResource,
        ScheduleCollectionResource,
        ScheduleDeactivateResource,
        ScheduleResource,
        ScheduleTriggerResource,
    )
    from dossier.api.templates.resources import (
        TemplateCollectionResource,
        TemplateResource,
    )
    from dossier.api.webhooks.resources import WebexWebhookResource

    routes: list[tuple[str, object]] = [
        ("/reports", ReportCollectionResource(context)),
        ("/reports/{report_id}", ReportResource(context)),
        ("/reports/{report_id}/status", ReportStatusResource(context)),
        ("/reports/{report_id}/retry", ReportRetryResource(context)),
        ("/reports/{report_id}/exports", ExportCollectionResource(context)),
        ("/reports/{report_id}/exports/{fmt}/download", ExportDownloadResource(context)),
        ("/reports/{report_id}/deliveries", DeliveryCollectionResource(context)),
        ("/deliveries/{delivery_id}/retry", DeliveryRetryResource(context)),
        ("/podcast-deliveries/{delivery_id}/retry", PodcastDeliveryRetryResource(context)),
        ("/reports/{report_id}/podcast", PodcastResource(context)),
        ("/reports/{report_id}/podcast/audio", PodcastAudioResource(context)),
        ("/podcasts/queue", PodcastQueueResource(context)),
        ("/workflows/{workflow}/sections", WorkflowSectionsResource(context)),
        ("/templates", TemplateCollectionResource(context)),
        ("/templates/{template_id}", TemplateResource(context)),
        ("/schedules", ScheduleCollectionResource(context)),
        ("/schedules/next-runs", NextRunsResource(context)),
        ("/schedules/{schedule_id}", ScheduleResource(context)),
        ("/schedules/{schedule_id}/activate", ScheduleActivateResource(context)),
        ("/schedules/{schedule_id}/deactivate", ScheduleDeactivateResource(context)),
        ("/schedules/{schedule_id}/trigger", ScheduleTriggerResource(context)),
        ("/analytics/dashboard", DashboardResource(context)),
        ("/analytics/trends", TrendsResource(context)),
        ("/analytics/distribution", DistributionResource(context)),
        ("/admin/cleanup", CleanupResource(context, config)),
        ("/webhooks/webex", WebexWebhookResource(context)),
    ]
    for template, resource in routes:
        app.add_route(template, resource)


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` or without a
        context, only ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    resolved = dependencies or AppDependencies()
    context = resolved.context
    middleware: list[object] = []
    if context is not None and resolved.manage_lifespan:
        middleware.append(LifespanManager(context, engine=resolved.engine))
    middleware.append(CallerIdentity())

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(context))

    if context is not None:
        _add_domain_routes(app, context, resolved.config)

    app.add_error_handler(falcon.HTTPError, handle_http_error)
    app.add_error_handler(DossierError, handle_dossier_error)

    return app
