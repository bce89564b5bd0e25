"""Purchase Requests backend package.

To use the Flask app:
    from procurement.flask_app import create_app

To use the domain services without HTTP:
    from procurement.core.users import UserLifecycleManager
    from procurement.core.purchase_requests import RequestVersioningEngine
"""
# Note: flask_app is not imported here so the CLI in scripts/ can use the
# storage and domain layers without building an application.
