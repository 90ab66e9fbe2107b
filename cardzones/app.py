import argparse
import logging
import sys
from typing import Optional

from PySide6.QtWidgets import QApplication

from cardzones.core.asset_index import AssetIndexClient, InMemoryAssetIndex
from cardzones.core.bindings import BindingResolver, ResolutionContext
from cardzones.core.json_loader import TemplateLoader, load_sample_data
from cardzones.core.log import configure_logging
from cardzones.core.settings import load_settings
from cardzones.core.template_store import TemplateSession
from cardzones.widgets.editor_window import ZoneEditorWindow


def build_resolution_context(
    sample_data: Optional[str] = None,
    assets: Optional[str] = None,
    asset_index_url: Optional[str] = None,
) -> ResolutionContext:
    """Preview environment: sample claims, metadata and where criteria images come from."""
    context = ResolutionContext()
    if sample_data:
        context.sample_data, context.metadata = load_sample_data(sample_data)
    if assets and asset_index_url:
        raise ValueError("Use either an asset file or an asset index URL, not both")
    if assets:
        context.asset_query = InMemoryAssetIndex.load(assets).resolve_asset_criteria
    elif asset_index_url:
        context.asset_query = AssetIndexClient(asset_index_url).resolve_asset_criteria
    return context


def main(argv=None):
    parser = argparse.ArgumentParser(description="Card zone template editor")
    parser.add_argument("template", nargs="?", help="template JSON to open")
    parser.add_argument("--settings", help="canvas settings JSON")
    parser.add_argument("--sample-data", help="sample credential JSON for the preview")
    parser.add_argument("--assets", help="JSON file with an 'assets' list answering criteria queries")
    parser.add_argument("--asset-index", help="base URL of an HTTP asset index")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    logger = configure_logging(logging.DEBUG if args.debug else logging.INFO)
    settings = load_settings(args.settings)

    if args.template:
        session = TemplateLoader(args.template, settings=settings).load_session()
    else:
        session = TemplateSession(settings=settings)
    logger.info("Editing template %s", session.template.name or session.template.id)

    try:
        context = build_resolution_context(args.sample_data, args.assets, args.asset_index)
    except ValueError as e:
        parser.error(str(e))

    app = QApplication(sys.argv[:1])
    window = ZoneEditorWindow(session, BindingResolver(context))
    window.template_path = args.template
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
