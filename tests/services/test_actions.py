import pytest

from matrixusermanager.models import ActionResult, Dialect, Environment, MenuAction, QueryResult
from matrixusermanager.services import queries
from matrixusermanager.services.accounts import RegistrationOutcome
from matrixusermanager.services.actions import ActionDispatcher


class RecordingExecutor:
    def __init__(self, results=None):
        self.results = list(results or [])
        self.statements = []

    def execute(self, environment, statement):
        self.statements.append(statement)
        if self.results:
            return self.results.pop(0)
        return QueryResult(True, "ok")


class FakeAccounts:
    def __init__(self, outcome=RegistrationOutcome.REGISTERED, output="Success!", hashed="$2b$12$hash"):
        self.outcome = outcome
        self.output = output
        self.hashed = hashed
        self.created = []
        self.hashed_passwords = []

    def create(self, environment, localpart, password, admin):
        self.created.append((localpart, password, admin))
        return self.outcome, self.output

    def hash_password(self, environment, password):
        self.hashed_passwords.append(password)
        return self.hashed


class FakeBackups:
    def __init__(self):
        self.calls = 0

    def backup(self, environment):
        self.calls += 1
        return ActionResult("Backup Complete", "saved")


@pytest.fixture
def environment():
    return Environment(
        server_container="synapse",
        dialect=Dialect.EMBEDDED_FILE,
        domain="chat.example",
        config_path="/data/homeserver.yaml",
        sqlite_path="/data/homeserver.db",
    )


def _dispatcher(logger, executor=None, accounts=None, backups=None):
    return ActionDispatcher(
        logger=logger,
        executor=executor or RecordingExecutor(),
        accounts=accounts or FakeAccounts(),
        backups=backups or FakeBackups(),
    )


def test_every_menu_action_except_exit_has_a_handler(logger):
    dispatcher = _dispatcher(logger)
    assert set(dispatcher.handlers) == set(MenuAction) - {MenuAction.EXIT}


def test_exit_is_not_dispatchable(logger, environment, scripted_prompter):
    with pytest.raises(ValueError):
        _dispatcher(logger).dispatch(MenuAction.EXIT, environment, scripted_prompter())


def test_list_users_passes_query_output_through(logger, environment, scripted_prompter):
    executor = RecordingExecutor([QueryResult(True, "username | admin\n@a:chat.example | NO")])

    result = _dispatcher(logger, executor=executor).dispatch(
        MenuAction.LIST, environment, scripted_prompter()
    )

    assert result.title == "Users List"
    assert "@a:chat.example" in result.body
    assert executor.statements[0].params == {"limit": 100}


def test_list_users_failure_is_shown_not_raised(logger, environment, scripted_prompter):
    executor = RecordingExecutor([QueryResult(False, "Error: no such table: users")])

    result = _dispatcher(logger, executor=executor).list_users(environment, scripted_prompter())

    assert not result.ok
    assert "no such table" in result.body


def test_show_user_info_runs_three_sections(logger, environment, scripted_prompter):
    executor = RecordingExecutor(
        [QueryResult(True, "profile"), QueryResult(True, "devices"), QueryResult(True, "rooms")]
    )
    prompter = scripted_prompter(answers=["alice"])

    result = _dispatcher(logger, executor=executor).show_user_info(environment, prompter)

    assert result.title == "User Info: @alice:chat.example"
    assert result.body.index("=== USER INFORMATION ===") < result.body.index("profile")
    assert result.body.index("=== USER DEVICES ===") < result.body.index("devices")
    assert result.body.index("=== ROOM MEMBERSHIPS ===") < result.body.index("rooms")
    assert all(s.params["user_id"] == "@alice:chat.example" for s in executor.statements)
    assert len(executor.statements) == 3


def test_show_user_info_without_username_is_cancelled(logger, environment, scripted_prompter):
    executor = RecordingExecutor()

    result = _dispatcher(logger, executor=executor).show_user_info(
        environment, scripted_prompter(answers=[""])
    )

    assert result.title == "Cancelled"
    assert executor.statements == []


def test_create_user_registered(logger, environment, scripted_prompter):
    accounts = FakeAccounts()
    prompter = scripted_prompter(answers=["bob"], passwords=["s3cret"], confirms=[True, True])

    result = _dispatcher(logger, accounts=accounts).create_user(environment, prompter)

    assert result.ok
    assert result.title == "User Created"
    assert "@bob:chat.example" in result.body
    assert accounts.created == [("bob", "s3cret", True)]
    assert prompter.confirm_prompts[1] == "Create user 'bob' with admin=yes?"


def test_create_user_direct_insert_is_flagged(logger, environment, scripted_prompter):
    accounts = FakeAccounts(outcome=RegistrationOutcome.INSERTED, output="")
    prompter = scripted_prompter(answers=["bob"], passwords=["pw"], confirms=[False, True])

    result = _dispatcher(logger, accounts=accounts).create_user(environment, prompter)

    assert result.ok
    assert result.title == "User Created (direct insert)"
    assert "best-effort" in result.body


def test_create_user_failure_includes_hint(logger, environment, scripted_prompter):
    accounts = FakeAccounts(outcome=RegistrationOutcome.FAILED, output="boom")
    prompter = scripted_prompter(answers=["bob"], passwords=["pw"], confirms=[False, True])

    result = _dispatcher(logger, accounts=accounts).create_user(environment, prompter)

    assert not result.ok
    assert result.title == "Creation Failed"
    assert "boom" in result.body
    assert "Suggested action" in result.body


def test_create_user_declined_confirmation_creates_nothing(logger, environment, scripted_prompter):
    accounts = FakeAccounts()
    prompter = scripted_prompter(answers=["bob"], passwords=["pw"], confirms=[False, False])

    result = _dispatcher(logger, accounts=accounts).create_user(environment, prompter)

    assert result.body == "User creation cancelled"
    assert accounts.created == []


def test_create_user_without_password_is_cancelled(logger, environment, scripted_prompter):
    accounts = FakeAccounts()
    prompter = scripted_prompter(answers=["bob"], passwords=[""])

    result = _dispatcher(logger, accounts=accounts).create_user(environment, prompter)

    assert result.body == "No password provided"
    assert accounts.created == []


def test_reset_password_updates_hash(logger, environment, scripted_prompter):
    executor = RecordingExecutor()
    accounts = FakeAccounts(hashed="$2b$12$new")
    prompter = scripted_prompter(answers=["@carol:other.example"], passwords=["pw"], confirms=[True])

    result = _dispatcher(logger, executor=executor, accounts=accounts).reset_password(
        environment, prompter
    )

    assert result.title == "Password Reset"
    statement = executor.statements[0]
    assert statement.params == {"user_id": "@carol:other.example", "password_hash": "$2b$12$new"}
    assert "$2b$12$new" not in statement.sql


def test_reset_password_without_hash_tool_reports_hint(logger, environment, scripted_prompter):
    executor = RecordingExecutor()
    accounts = FakeAccounts(hashed=None)
    prompter = scripted_prompter(answers=["carol"], passwords=["pw"], confirms=[True])

    result = _dispatcher(logger, executor=executor, accounts=accounts).reset_password(
        environment, prompter
    )

    assert not result.ok
    assert result.title == "Password Reset Failed"
    assert "python3-bcrypt" in result.body
    assert executor.statements == []


def test_reset_password_declined(logger, environment, scripted_prompter):
    accounts = FakeAccounts()
    prompter = scripted_prompter(answers=["carol"], passwords=["pw"], confirms=[False])

    result = _dispatcher(logger, accounts=accounts).reset_password(environment, prompter)

    assert result.body == "Password reset cancelled"
    assert accounts.hashed_passwords == []


def test_deactivate_and_reactivate(logger, environment, scripted_prompter):
    executor = RecordingExecutor()
    dispatcher = _dispatcher(logger, executor=executor)

    deactivated = dispatcher.deactivate_user(
        environment, scripted_prompter(answers=["dave"], confirms=[True])
    )
    reactivated = dispatcher.reactivate_user(
        environment, scripted_prompter(answers=["dave"], confirms=[True])
    )

    assert deactivated.title == "User Deactivated"
    assert reactivated.title == "User Reactivated"
    assert executor.statements[0].params == {"user_id": "@dave:chat.example", "deactivated": 1}
    assert executor.statements[1].params == {"user_id": "@dave:chat.example", "deactivated": 0}


def test_deactivate_declined(logger, environment, scripted_prompter):
    executor = RecordingExecutor()

    result = _dispatcher(logger, executor=executor).deactivate_user(
        environment, scripted_prompter(answers=["dave"], confirms=[False])
    )

    assert result.body == "Deactivation cancelled"
    assert executor.statements == []


def test_backup_delegates(logger, environment, scripted_prompter):
    backups = FakeBackups()

    result = _dispatcher(logger, backups=backups).dispatch(
        MenuAction.BACKUP, environment, scripted_prompter()
    )

    assert result.title == "Backup Complete"
    assert backups.calls == 1


def test_custom_query_uses_default_and_confirms(logger, environment, scripted_prompter):
    executor = RecordingExecutor([QueryResult(True, "name | admin")])
    prompter = scripted_prompter(answers=[None], confirms=[True])

    result = _dispatcher(logger, executor=executor).run_custom_query(environment, prompter)

    assert result.title == "Query Results"
    assert executor.statements[0].sql == queries.DEFAULT_CUSTOM_QUERY
    assert queries.DEFAULT_CUSTOM_QUERY in prompter.confirm_prompts[0]


def test_custom_query_declined(logger, environment, scripted_prompter):
    executor = RecordingExecutor()
    prompter = scripted_prompter(answers=["DELETE FROM users;"], confirms=[False])

    result = _dispatcher(logger, executor=executor).run_custom_query(environment, prompter)

    assert result.body == "Query execution cancelled"
    assert executor.statements == []
