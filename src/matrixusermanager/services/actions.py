"""Menu actions for matrix-user-manager."""

from typing import Callable, Dict

from matrixusermanager.errors_catalog import actionable_error
from matrixusermanager.models import ActionResult, Environment, MenuAction, Statement
from matrixusermanager.services import queries
from matrixusermanager.services.accounts import RegistrationOutcome
from matrixusermanager.services.usernames import normalize_username


def cancelled(reason: str) -> ActionResult:
    return ActionResult("Cancelled", reason, ok=False)


class ActionDispatcher:
    """Maps a :class:`MenuAction` to one user-management operation.

    Every handler takes the resolved environment and the prompter and
    returns an :class:`ActionResult`; none of them ends the session.
    """

    def __init__(self, logger, executor, accounts, backups):
        self.logger = logger
        self.executor = executor
        self.accounts = accounts
        self.backups = backups
        self.handlers: Dict[MenuAction, Callable[[Environment, object], ActionResult]] = {
            MenuAction.LIST: self.list_users,
            MenuAction.SHOW_INFO: self.show_user_info,
            MenuAction.CREATE: self.create_user,
            MenuAction.RESET_PASSWORD: self.reset_password,
            MenuAction.DEACTIVATE: self.deactivate_user,
            MenuAction.REACTIVATE: self.reactivate_user,
            MenuAction.BACKUP: self.backup_database,
            MenuAction.CUSTOM_QUERY: self.run_custom_query,
        }

    def dispatch(self, action: MenuAction, environment: Environment, prompter) -> ActionResult:
        handler = self.handlers.get(action)
        if handler is None:
            raise ValueError(f"No handler for menu action: {action}")
        return handler(environment, prompter)

    def _ask_user_id(self, environment: Environment, prompter, title: str, prompt: str):
        raw = prompter.ask(title, prompt)
        if not raw:
            return None
        return normalize_username(raw, environment.domain)

    def list_users(self, environment: Environment, prompter) -> ActionResult:
        self.logger.info("Listing users...")
        result = self.executor.execute(environment, queries.list_users(environment.dialect))
        if result.ok:
            self.logger.info("Listed users successfully")
        return ActionResult("Users List", result.output, ok=result.ok)

    def show_user_info(self, environment: Environment, prompter) -> ActionResult:
        user_id = self._ask_user_id(
            environment,
            prompter,
            "User Info",
            "Enter username (we'll add @ and domain if needed)",
        )
        if user_id is None:
            return cancelled("No username provided")

        dialect = environment.dialect
        profile = self.executor.execute(environment, queries.user_profile(dialect, user_id))
        devices = self.executor.execute(environment, queries.user_devices(dialect, user_id))
        rooms = self.executor.execute(environment, queries.user_rooms(user_id))

        body = (
            f"=== USER INFORMATION ===\n{profile.output}\n\n"
            f"=== USER DEVICES ===\n{devices.output}\n\n"
            f"=== ROOM MEMBERSHIPS ===\n{rooms.output}\n"
        )
        self.logger.info("Showed info for user: %s", user_id)
        return ActionResult(f"User Info: {user_id}", body, ok=profile.ok)

    def create_user(self, environment: Environment, prompter) -> ActionResult:
        localpart = prompter.ask("Create User", "Enter username (without @ and domain)")
        if not localpart:
            return cancelled("No username provided")

        password = prompter.ask_password("Password", f"Enter password for user '{localpart}'")
        if not password:
            return cancelled("No password provided")

        admin = prompter.confirm("Make this user an admin?")
        if not prompter.confirm(f"Create user '{localpart}' with admin={'yes' if admin else 'no'}?"):
            return cancelled("User creation cancelled")

        user_id = f"@{localpart}:{environment.domain}"
        self.logger.info("Creating user %s (admin=%s)", user_id, admin)
        outcome, output = self.accounts.create(environment, localpart, password, admin)

        if outcome is RegistrationOutcome.REGISTERED:
            self.logger.info("User created successfully: %s", user_id)
            return ActionResult(
                "User Created",
                f"Successfully created user: {user_id}\n\nOutput:\n{output}",
            )

        if outcome is RegistrationOutcome.INSERTED:
            self.logger.warning("User %s created by direct database insert", user_id)
            return ActionResult(
                "User Created (direct insert)",
                f"User created directly in database: {user_id}\n\n"
                "Synapse's registration tool was unavailable, so the account row was "
                "inserted by hand. This is best-effort: server-side registration hooks "
                "and any extra bookkeeping Synapse performs did not run.\n\n"
                f"Output:\n{output}",
            )

        self.logger.warning("Failed to create user %s: %s", user_id, output)
        return ActionResult(
            "Creation Failed",
            f"Failed to create user: {user_id}\n\nError:\n{output}\n\n"
            + actionable_error("registration_failed", user_id=user_id),
            ok=False,
        )

    def reset_password(self, environment: Environment, prompter) -> ActionResult:
        user_id = self._ask_user_id(environment, prompter, "Reset Password", "Enter username")
        if user_id is None:
            return cancelled("No username provided")

        password = prompter.ask_password("New Password", f"Enter new password for '{user_id}'")
        if not password:
            return cancelled("No password provided")

        if not prompter.confirm(f"Reset password for user '{user_id}'?"):
            return cancelled("Password reset cancelled")

        hashed = self.accounts.hash_password(environment, password)
        if hashed is None:
            self.logger.warning("Failed to reset password for: %s - no hashing method available", user_id)
            return ActionResult(
                "Password Reset Failed",
                f"Could not generate password hash for: {user_id}\n\n"
                + actionable_error("hash_unavailable", container=environment.server_container),
                ok=False,
            )

        result = self.executor.execute(environment, queries.update_password(user_id, hashed))
        self.logger.info("Password reset for: %s (ok=%s)", user_id, result.ok)
        return ActionResult(
            "Password Reset",
            f"Password reset for: {user_id}\n\nResult:\n{result.output}",
            ok=result.ok,
        )

    def _set_deactivated(
        self, environment: Environment, prompter, deactivated: bool
    ) -> ActionResult:
        verb = "Deactivate" if deactivated else "Reactivate"
        user_id = self._ask_user_id(
            environment, prompter, f"{verb} User", f"Enter username to {verb.lower()}"
        )
        if user_id is None:
            return cancelled("No username provided")

        question = (
            f"Deactivate (soft delete) user '{user_id}'? This will disable the account."
            if deactivated
            else f"Reactivate user '{user_id}'?"
        )
        if not prompter.confirm(question):
            return cancelled(f"{verb[:-1]}ion cancelled")

        result = self.executor.execute(environment, queries.set_deactivated(user_id, deactivated))
        self.logger.info("%sd user: %s (ok=%s)", verb, user_id, result.ok)
        return ActionResult(
            f"User {verb}d",
            f"{verb}d user: {user_id}\n\nResult:\n{result.output}",
            ok=result.ok,
        )

    def deactivate_user(self, environment: Environment, prompter) -> ActionResult:
        return self._set_deactivated(environment, prompter, True)

    def reactivate_user(self, environment: Environment, prompter) -> ActionResult:
        return self._set_deactivated(environment, prompter, False)

    def backup_database(self, environment: Environment, prompter) -> ActionResult:
        return self.backups.backup(environment)

    def run_custom_query(self, environment: Environment, prompter) -> ActionResult:
        sql = prompter.ask("Custom Query", "Enter SQL query", default=queries.DEFAULT_CUSTOM_QUERY)
        if not sql:
            return cancelled("No query provided")

        if not prompter.confirm(f"Execute this SQL query?\n\n{sql}\n"):
            return cancelled("Query execution cancelled")

        result = self.executor.execute(environment, Statement(sql))
        self.logger.info("Executed custom query: %s", sql)
        return ActionResult("Query Results", result.output, ok=result.ok)
