"""DocuTrack CLI tool (docutrack)."""

import typer

app = typer.Typer(name="docutrack", help="DocuTrack CLI")

DEFAULT_API_URL = "http://localhost:8000"


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("docutrack.main:create_app", factory=True, host=host, port=port, reload=reload)


@app.command("roles")
def list_roles():
    """Show the role hierarchy with permissions and allowed domains."""
    from docutrack.services.role_registry import RoleRegistry

    registry = RoleRegistry()
    for role in registry.roles:
        info = registry.role_info(role)
        typer.echo(f"  [{info['level']}] {info['role']} ({', '.join(info['allowedDomains'])})")
        for permission in info["permissions"]:
            typer.echo(f"        - {permission}")


@app.command("whitelist")
def list_whitelist():
    """List the seeded whitelist entries."""
    from docutrack.core.config import settings
    from docutrack.wiring import build_container

    container = build_container(settings)
    for user in container.auth_service.list_users():
        typer.echo(f"  {user['email']:<28} {user['role']}")


@app.command("check-integrity")
def check_integrity():
    """Validate whitelist role/domain assignments. Exits 1 on issues."""
    from docutrack.core.config import settings
    from docutrack.wiring import build_container

    report = build_container(settings).auth_service.validate_system_integrity()
    for issue in report["issues"]:
        typer.echo(f"❌ {issue['user']}: {issue['role']} is not allowed for {issue['domain']}")
    for warning in report["warnings"]:
        typer.echo(f"⚠️  {warning['type']}: {warning['count']}")
    if report["issues"]:
        raise typer.Exit(code=1)
    typer.echo(f"✅ {report['statistics']['totalUsers']} whitelist entries OK")


@app.command("hash-password")
def hash_password_cmd(
    password: str = typer.Option(..., prompt=True, hide_input=True),
    rounds: int = typer.Option(12, help="bcrypt cost factor"),
):
    """Print a bcrypt hash for a whitelist entry."""
    from docutrack.core.security import hash_password
    typer.echo(hash_password(password, rounds))


@app.command("login")
def login(
    email: str = typer.Argument(..., help="Staff email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
    api_url: str = typer.Option(DEFAULT_API_URL, help="API base URL"),
):
    """Log in via the API and print the session token."""
    import httpx
    resp = httpx.post(f"{api_url}/api/auth/login", json={"email": email, "password": password}, timeout=30)
    data = resp.json()
    if not data.get("success"):
        typer.echo(f"❌ {data.get('errorCode')}: {data.get('message')}")
        raise typer.Exit(code=1)
    typer.echo(f"✅ {data['user']['role']} session: {data['session']['sessionId']}")


@app.command("track")
def track(
    tracking_code: str = typer.Argument(..., help="Tracking code, e.g. ERASMO_12345"),
    api_url: str = typer.Option(DEFAULT_API_URL, help="API base URL"),
):
    """Look up a request's status by tracking code."""
    import httpx
    resp = httpx.get(f"{api_url}/api/search/{tracking_code}", timeout=30)
    data = resp.json()
    if not data.get("success"):
        typer.echo(f"❌ {data.get('error')}: {data.get('message')}")
        raise typer.Exit(code=1)
    record = data["data"]
    typer.echo(f"  {record['trackingCode']}: {record['status']} ({record['documentType']}, requested {record['dateRequested']})")


if __name__ == "__main__":
    app()
