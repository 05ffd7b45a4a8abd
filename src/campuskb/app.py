# /campuskb/app.py
"""
Terminal front end for the campus knowledge-base portal.
Handles sign-in, the administrator dashboard (documents, users, stats) and the
question/answer session. All state changes go through the Portal.
"""
import sys
from pathlib import Path

# Rich UI Components
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table, box

# Local module imports
from .config import BACKEND_URL, DOCUMENT_CATEGORIES, UPLOAD_EXTENSIONS, console
from .document_catalog import build_documents_table, format_file_size
from .errors import PortalError
from .models import MessageRole, QueryMessage, Role, UploadedFile
from .observability import get_logger
from .portal import Portal

logger = get_logger(__name__)


# --- UI & Formatting Functions ---

def display_welcome_banner():
    console.print(Panel(
        "[bold magenta]University Knowledge Base[/bold magenta]",
        subtitle=f"[cyan]Backend: {BACKEND_URL}[/cyan]",
        expand=False
    ))


def render_message(message: QueryMessage):
    """Prints one conversation turn."""
    stamp = message.timestamp.astimezone().strftime("%H:%M")
    if message.role is MessageRole.USER:
        console.print(f"[bold cyan]You[/bold cyan] [dim]{stamp}[/dim]  {message.content}")
        return
    if message.role is MessageRole.ERROR:
        console.print(Panel(
            f"[red]{message.content}[/red]\n[dim]id: {message.id}  (choose 'retry' to ask again)[/dim]",
            title="Error",
            border_style="red",
        ))
        return
    console.print(Panel(Markdown(message.content), title=f"Assistant [dim]{stamp}[/dim]", border_style="green"))
    if message.sources:
        console.print("[bold]Sources:[/bold] " + ", ".join(message.sources))


def render_stats(portal: Portal):
    stats = portal.stats()
    users = portal.list_users()
    console.print(Panel(
        f"Documents: [bold]{stats.total_documents}[/bold]"
        f"{'' if stats.total_documents else '  (no documents uploaded yet)'}\n"
        f"Total size: [bold]{format_file_size(stats.total_size)}[/bold]\n"
        f"Categories: [bold]{stats.categories}[/bold]\n"
        f"Total users: [bold]{len(users)}[/bold]\n"
        f"Uploaded this week: [bold]{stats.recent_uploads}[/bold]",
        title="Overview",
        border_style="blue",
    ))
    if stats.category_breakdown:
        table = Table(title="By Category", box=box.SIMPLE, header_style="bold")
        table.add_column("Category", style="green")
        table.add_column("Documents", justify="right")
        for item in stats.category_breakdown:
            table.add_row(item.name, str(item.count))
        console.print(table)


# --- Flows ---

def _resolve_upload_path(raw_input: str) -> tuple[Path | None, str | None]:
    """Normalizes and validates user-provided upload path."""
    cleaned = str(raw_input or "").strip().strip('"').strip("'")
    if not cleaned:
        return None, "Error: Empty path provided."
    try:
        resolved = Path(cleaned).expanduser().resolve(strict=True)
    except FileNotFoundError:
        return None, f"Error: File not found at '{cleaned}'"
    except OSError as exc:
        return None, f"Error: Invalid path '{cleaned}' ({exc})"
    if not resolved.is_file():
        return None, f"Error: Path is not a regular file: '{resolved}'"
    if resolved.suffix.lower() not in UPLOAD_EXTENSIONS:
        return None, f"Error: Unsupported file type '{resolved.suffix or resolved.name}' (allowed: {', '.join(UPLOAD_EXTENSIONS)})"
    return resolved, None


def handle_sign_in(portal: Portal, register: bool = False):
    email = Prompt.ask("Email")
    password = Prompt.ask("Password", password=True)
    with console.status("[bold cyan]Contacting server...[/bold cyan]", spinner="dots"):
        result = portal.sign_up(email, password) if register else portal.sign_in(email, password)
    if not result.success:
        console.print(f"[bold red]{result.message}[/bold red]")
        return
    console.print(f"[green]Signed in as {result.user.email} ({result.user.role.value})[/green]")


def handle_document_upload(portal: Portal):
    """CLI flow for uploading a new document."""
    file_path, error_message = _resolve_upload_path(Prompt.ask("Enter the full path to your document"))
    if file_path is None:
        console.print(f"[bold red]{error_message}[/bold red]")
        return
    for index, name in enumerate(DOCUMENT_CATEGORIES, start=1):
        console.print(f"  {index}. {name}")
    choice = Prompt.ask("Category (number or name)")
    if choice.isdigit() and 1 <= int(choice) <= len(DOCUMENT_CATEGORIES):
        choice = DOCUMENT_CATEGORIES[int(choice) - 1]
    description = Prompt.ask("Description (optional)", default="")
    try:
        upload = UploadedFile.from_path(file_path)
    except OSError as exc:
        console.print(f"[bold red]Error: Could not read '{file_path}' ({exc})[/bold red]")
        return

    with console.status("[bold cyan]Uploading...[/bold cyan]", spinner="dots"):
        document = portal.upload_document(upload, choice, description)
    console.print(Panel(
        f"[green]{document.name} has been added to the knowledge base.[/green]\n"
        f"ID: {document.id}\nSize: {format_file_size(document.size)}",
        title="Upload Successful",
        border_style="green",
    ))


def handle_document_list(portal: Portal):
    search = Prompt.ask("Search (blank for all)", default="")
    category = Prompt.ask("Category filter (blank for all)", default="")
    documents = portal.list_documents(search=search or None, category=category or None)
    if not documents:
        console.print("[yellow]No documents found.[/yellow]")
        return
    console.print(build_documents_table(documents, title=f"Documents ({len(documents)})"))


def handle_document_delete(portal: Portal):
    doc_id = Prompt.ask("Document ID to delete").strip()
    if not Confirm.ask(f"Delete {doc_id}?", default=False):
        return
    portal.delete_document(doc_id)
    console.print("[green]The document has been successfully removed.[/green]")


def handle_user_management(portal: Portal):
    while True:
        table = Table(title="Users", border_style="blue", header_style="bold", box=box.SQUARE)
        table.add_column("ID", style="cyan")
        table.add_column("Email", style="magenta")
        table.add_column("Role")
        table.add_column("Created")
        for user in portal.list_users():
            table.add_row(user.id, user.email, user.role.value, user.created_at)
        console.print(table)

        choice = Prompt.ask("Users", choices=["add", "delete", "back"], default="back")
        if choice == "back":
            return
        try:
            if choice == "add":
                email = Prompt.ask("Email")
                password = Prompt.ask("Password", password=True)
                role = Prompt.ask("Role", choices=[r.value for r in Role], default=Role.USER.value)
                with console.status("[bold cyan]Creating user...[/bold cyan]", spinner="dots"):
                    created = portal.add_user(email, password, role)
                console.print(f"[green]User {created.email} has been created with role: {created.role.value}[/green]")
            else:
                portal.delete_user(Prompt.ask("User ID to delete").strip())
                console.print("[green]User deleted successfully[/green]")
        except PortalError as exc:
            console.print(f"[bold red]{exc.message}[/bold red]")


def show_suggestions(portal: Portal, text: str = ""):
    groups = portal.suggestions(text)
    if not groups:
        console.print("[yellow]No matching suggestions.[/yellow]")
        return
    for group, queries in groups.items():
        console.print(f"[bold]{group}[/bold]")
        for query in queries:
            console.print(f"  - {query}")


def handle_qa_session(portal: Portal):
    """Chat loop. Commands: back, clear, retry, history, suggest [words]."""
    history = portal.conversation()
    for message in history:
        render_message(message)
    if not history:
        console.print("[dim]Ask me anything about the university.[/dim]")
    console.print("[italic]Commands: 'back', 'clear', 'retry', 'history', 'suggest [words]'.[/italic]")

    while True:
        query = Prompt.ask("[bold cyan]Ask a question[/bold cyan]").strip()
        command = query.lower()
        if command == "back":
            return
        if not query:
            continue
        try:
            if command == "clear":
                portal.clear_conversation()
                console.print("[green]Conversation cleared.[/green]")
                continue
            if command == "history":
                for message in portal.conversation():
                    render_message(message)
                continue
            if command == "suggest" or command.startswith("suggest "):
                show_suggestions(portal, query[len("suggest"):])
                continue
            if command == "retry":
                failed = [m for m in portal.conversation() if m.role is MessageRole.ERROR]
                if not failed:
                    console.print("[yellow]Nothing to retry.[/yellow]")
                    continue
                with console.status("[bold cyan]Searching the knowledge base...[/bold cyan]", spinner="dots"):
                    reply = portal.retry(failed[-1].id)
            else:
                with console.status("[bold cyan]Searching the knowledge base...[/bold cyan]", spinner="dots"):
                    reply = portal.ask(query)
            render_message(reply)
        except PortalError as exc:
            console.print(f"[bold red]{exc.message}[/bold red]")


ADMIN_MENU = (
    ("1", "[green]Upload Document[/green]", handle_document_upload),
    ("2", "[cyan]List / Search Documents[/cyan]", handle_document_list),
    ("3", "[red]Delete Document[/red]", handle_document_delete),
    ("4", "[blue]Dashboard Overview[/blue]", render_stats),
    ("5", "[magenta]Manage Users[/magenta]", handle_user_management),
    ("6", "[cyan]Ask Questions[/cyan]", handle_qa_session),
)

USER_MENU = (
    ("1", "[cyan]Ask Questions[/cyan]", handle_qa_session),
    ("2", "[green]Suggested Questions[/green]", show_suggestions),
)


def _run_menu(portal: Portal, entries) -> bool:
    """Shows a role menu; returns False when the user chose to exit."""
    user = portal.current_user()
    console.print(f"\n[bold]Main Menu[/bold] [dim]({user.email}, {user.role.value})[/dim]")
    for key, label, _handler in entries:
        console.print(f"{key}. {label}")
    sign_out_key = str(len(entries) + 1)
    exit_key = str(len(entries) + 2)
    console.print(f"{sign_out_key}. Sign Out")
    console.print(f"{exit_key}. Exit")

    choice = Prompt.ask("Choose an option", choices=[key for key, _, _ in entries] + [sign_out_key, exit_key])
    if choice == exit_key:
        return False
    if choice == sign_out_key:
        portal.sign_out()
        console.print("[green]Signed out.[/green]")
        return True
    handler = next(handler for key, _, handler in entries if key == choice)
    handler(portal)
    return True


def _run_signed_out(portal: Portal) -> bool:
    console.print("\n[bold]Welcome[/bold]")
    console.print("[green]1. Sign In[/green]")
    console.print("[cyan]2. Sign Up[/cyan]")
    console.print("[red]3. Exit[/red]")
    choice = Prompt.ask("Choose an option", choices=["1", "2", "3"])
    if choice == "3":
        return False
    handle_sign_in(portal, register=(choice == "2"))
    return True


def main():
    """Main application loop."""
    display_welcome_banner()
    portal = Portal.open()
    logger.info("cli_started", documents=len(portal.catalog))

    try:
        running = True
        while running:
            try:
                user = portal.current_user()
                if user is None:
                    running = _run_signed_out(portal)
                else:
                    running = _run_menu(portal, ADMIN_MENU if user.is_admin else USER_MENU)
            except PortalError as exc:
                console.print(f"[bold red]{exc.message}[/bold red]")
            except KeyboardInterrupt:
                break
    finally:
        portal.close()

    console.print("\n[bold magenta]Goodbye![/bold magenta]")
    sys.exit(0)

if __name__ == "__main__":
    main()
