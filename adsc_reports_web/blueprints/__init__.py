"""JSON blueprints registered by :func:`adsc_reports_web.create_app`."""
