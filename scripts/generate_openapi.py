#!/usr/bin/env python3
"""
Generate the OpenAPI JSON specification of the CCAS workflow API.

The document is built from the FastAPI app without starting it (no database or SMTP
connection is needed):
- Removes the documentation endpoints themselves
- Documents the caller identity headers as security schemes
- Adds server information for different environments

Usage:
    python scripts/generate_openapi.py
    python scripts/generate_openapi.py --output docs/openapi.json --pretty
    python scripts/generate_openapi.py --env prod
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

# Add src to path for imports
script_dir = Path(__file__).parent.absolute()
project_root = script_dir.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from ccas_api.main import create_app  # noqa: E402
from ccas_api.settings import Settings  # noqa: E402

HTTP_METHODS = ("get", "post", "put", "patch", "delete")


def get_environment_servers(env: str = "dev") -> list[dict[str, str]]:
    """Get server configurations for different environments."""
    servers = {
        "dev": [{"url": "http://localhost:8000", "description": "Local development server"}],
        "uat": [{"url": "https://ccas-uat.example.com", "description": "UAT environment"}],
        "prod": [{"url": "https://ccas.example.com", "description": "Production environment"}],
    }
    return servers.get(env, servers["dev"])


def add_caller_security(openapi_spec: dict[str, Any]) -> dict[str, Any]:
    """Document X-User-Email / X-User-Role as required on every non-health operation."""
    openapi_spec.setdefault("components", {}).setdefault("securitySchemes", {}).update(
        {
            "userEmail": {
                "type": "apiKey",
                "name": "X-User-Email",
                "in": "header",
                "description": "Email of the authenticated caller",
            },
            "userRole": {
                "type": "apiKey",
                "name": "X-User-Role",
                "in": "header",
                "description": "Role of the authenticated caller (requestor, secretary, siva, ...)",
            },
        }
    )

    for path, methods in openapi_spec.get("paths", {}).items():
        if "/health" in path:
            continue
        for method, operation in methods.items():
            if method.lower() in HTTP_METHODS:
                operation["security"] = [{"userEmail": [], "userRole": []}]

    return openapi_spec


def filter_internal_endpoints(openapi_spec: dict[str, Any]) -> dict[str, Any]:
    """Remove documentation endpoints from the published document."""
    for path in ("/", "/docs", "/redoc", "/openapi.json"):
        openapi_spec.get("paths", {}).pop(path, None)
    return openapi_spec


def _remove_null_values(obj: Any) -> Any:
    """Recursively remove null values from the OpenAPI spec."""
    if isinstance(obj, dict):
        return {k: _remove_null_values(v) for k, v in obj.items() if v is not None}
    if isinstance(obj, list):
        return [_remove_null_values(item) for item in obj if item is not None]
    return obj


def generate_openapi_spec(env: str = "dev") -> dict[str, Any]:
    """Generate the complete OpenAPI specification."""
    app = create_app(Settings(domain_db_connection_string=None, enable_email_notifications=False))

    openapi_spec = app.openapi()
    openapi_spec = filter_internal_endpoints(openapi_spec)
    openapi_spec = add_caller_security(openapi_spec)
    openapi_spec["servers"] = get_environment_servers(env)
    return _remove_null_values(openapi_spec)


def main() -> None:
    """Main script entry point."""
    parser = argparse.ArgumentParser(description="Generate the CCAS OpenAPI JSON")
    parser.add_argument("--output", "-o", default="openapi.json", help="Output file path (default: openapi.json)")
    parser.add_argument("--env", "-e", choices=["dev", "uat", "prod"], default="dev")
    parser.add_argument("--pretty", "-p", action="store_true", help="Pretty print JSON output")
    args = parser.parse_args()

    openapi_spec = generate_openapi_spec(args.env)

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(openapi_spec, f, indent=2 if args.pretty else None, ensure_ascii=False)

    operations = sum(
        len([m for m in methods if m.lower() in HTTP_METHODS]) for methods in openapi_spec.get("paths", {}).values()
    )
    print(f"OpenAPI spec written to: {output_path.absolute()} ({operations} operations)")


if __name__ == "__main__":
    main()
