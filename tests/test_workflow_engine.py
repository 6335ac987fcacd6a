from datetime import timedelta

import pytest

from campus.exceptions import ConfigurationError, TransientBackendError
from campus.models import Contact, ContactList, EmailTemplate, WorkflowExecution
from campus.repositories.contact_repository import ContactRepository
from campus.utils.time_utils import utcnow


def tag(name, delay_minutes=0):
    return {"type": "add_tag", "config": {"tag": name}, "delay_minutes": delay_minutes}


@pytest.fixture
def welcome_template(test_db):
    template = EmailTemplate(
        template_key="welcome",
        subject="Bienvenue {first_name}",
        html_body="<p>Bonjour {contact_name}, merci pour {form_id}. {unknown}</p>",
    )
    test_db.add(template)
    test_db.commit()
    return template


@pytest.mark.asyncio
async def test_trigger_starts_only_matching_workflows(workflow_engine, make_workflow, make_contact):
    contact = make_contact()
    vip = make_workflow("tag_added", [tag("welcomed")], trigger_config={"tag": "vip"})
    make_workflow("tag_added", [tag("other")], trigger_config={"tag": "newsletter"})
    make_workflow("tag_added", [tag("paused")], trigger_config={"tag": "vip"}, status="paused")

    executions = await workflow_engine.trigger("tag_added", {"tag": "vip", "contact_id": contact.id})

    assert [execution.workflow_id for execution in executions] == [vip.id]
    assert executions[0].status == "completed"
    assert executions[0].contact_id == contact.id


@pytest.mark.asyncio
async def test_trigger_with_no_match_starts_nothing(workflow_engine, make_workflow, test_db):
    make_workflow("tag_added", [tag("x")], trigger_config={"tag": "vip"})

    assert await workflow_engine.trigger("tag_added", {"tag": "cold"}) == []
    assert test_db.query(WorkflowExecution).count() == 0


@pytest.mark.asyncio
async def test_empty_trigger_config_matches_any_payload(workflow_engine, make_workflow, make_contact):
    contact = make_contact()
    make_workflow("link_clicked", [tag("clicked")])

    executions = await workflow_engine.trigger("link_clicked", {"url": "https://example.com", "contact_id": contact.id})

    assert len(executions) == 1


@pytest.mark.asyncio
async def test_unknown_trigger_event_is_rejected(workflow_engine):
    with pytest.raises(ConfigurationError) as exc_info:
        await workflow_engine.trigger("page_viewed", {})
    assert exc_info.value.error_code == "UNKNOWN_TRIGGER_TYPE"


@pytest.mark.asyncio
async def test_delayed_action_suspends_then_resumes_in_order(workflow_engine, make_workflow, make_contact, test_db):
    contact = make_contact()
    make_workflow("contact_created", [tag("a"), tag("b", delay_minutes=5), tag("c")])
    now = utcnow()

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id}, now=now)

    assert execution.status == "pending"
    assert execution.current_step == 1
    assert execution.resume_at == now + timedelta(minutes=5)
    assert ContactRepository(test_db).get(contact.id).tags == ["a"]

    execution = await workflow_engine.resume(execution, now=now + timedelta(minutes=6))

    assert execution.status == "completed"
    assert execution.resume_at is None
    assert ContactRepository(test_db).get(contact.id).tags == ["a", "b", "c"]
    assert [step["step"] for step in execution.actions_completed] == [0, 1, 2]


@pytest.mark.asyncio
async def test_delay_is_measured_from_when_the_step_is_reached(clocked_engine, fake_clock, make_workflow,
                                                              make_contact, welcome_template, mock_mail_sender):
    contact = make_contact()
    make_workflow("contact_created", [
        {"type": "send_email", "config": {"template_id": welcome_template.id}},
        tag("b", delay_minutes=5),
    ])
    started = fake_clock()

    async def slow_send(*args):
        fake_clock.advance(minutes=2)
        return "msg_slow"

    mock_mail_sender.send.side_effect = slow_send

    [execution] = await clocked_engine.trigger("contact_created", {"contact_id": contact.id})

    assert execution.status == "pending"
    assert execution.current_step == 1
    assert execution.resume_at == started + timedelta(minutes=7)


@pytest.mark.asyncio
async def test_wait_action_postpones_following_steps(workflow_engine, make_workflow, make_contact, test_db):
    contact = make_contact()
    make_workflow("contact_created", [tag("a"), {"type": "wait", "config": {"minutes": 10}}, tag("b")])
    now = utcnow()

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id}, now=now)

    assert execution.status == "pending"
    assert execution.current_step == 2
    assert execution.resume_at == now + timedelta(minutes=10)
    assert ContactRepository(test_db).get(contact.id).tags == ["a"]

    execution = await workflow_engine.resume(execution, now=now + timedelta(minutes=10))

    assert execution.status == "completed"
    assert ContactRepository(test_db).get(contact.id).tags == ["a", "b"]


@pytest.mark.asyncio
async def test_failed_action_stops_the_execution(workflow_engine, make_workflow, make_contact, test_db):
    contact = make_contact()
    make_workflow("contact_created", [
        tag("a"),
        {"type": "send_email", "config": {"template_id": "missing-template"}},
        tag("b"),
    ])

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id})

    assert execution.status == "failed"
    assert execution.error_message.startswith("Action 2 failed:")
    assert "missing-template" in execution.error_message
    assert [step["status"] for step in execution.actions_completed] == ["completed", "failed"]
    assert ContactRepository(test_db).get(contact.id).tags == ["a"]


@pytest.mark.asyncio
async def test_unknown_action_type_fails_the_execution(workflow_engine, make_workflow, make_contact):
    contact = make_contact()
    make_workflow("contact_created", [{"type": "send_sms", "config": {}}])

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id})

    assert execution.status == "failed"
    assert execution.error_message == "Action 1 failed: Unknown action type: send_sms"


@pytest.mark.asyncio
async def test_mail_outage_fails_the_execution(workflow_engine, make_workflow, make_contact, welcome_template,
                                               mock_mail_sender):
    contact = make_contact()
    mock_mail_sender.send.side_effect = TransientBackendError("Resend unavailable")
    make_workflow("contact_created", [{"type": "send_email", "config": {"template_id": welcome_template.id}}])

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id})

    assert execution.status == "failed"
    assert "Resend unavailable" in execution.error_message


@pytest.mark.asyncio
async def test_add_tag_is_idempotent(workflow_engine, make_workflow, make_contact, test_db):
    contact = make_contact(tags=["vip"])
    make_workflow("contact_created", [tag("vip")])

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id})

    assert execution.status == "completed"
    assert ContactRepository(test_db).get(contact.id).tags == ["vip"]


@pytest.mark.asyncio
async def test_remove_tag_and_update_field(workflow_engine, make_workflow, make_contact, test_db):
    contact = make_contact(tags=["lead", "cold"])
    make_workflow("contact_created", [
        {"type": "remove_tag", "config": {"tag": "cold"}},
        {"type": "update_field", "config": {"field": "phone", "value": "+33600000000"}},
        {"type": "update_field", "config": {"field": "metadata.score", "value": 42}},
    ])

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id})

    stored = ContactRepository(test_db).get(contact.id)
    assert execution.status == "completed"
    assert stored.tags == ["lead"]
    assert stored.phone == "+33600000000"
    assert stored.contact_metadata["score"] == 42


@pytest.mark.asyncio
async def test_update_field_rejects_protected_columns(workflow_engine, make_workflow, make_contact):
    contact = make_contact()
    make_workflow("contact_created", [{"type": "update_field", "config": {"field": "email", "value": "x@y.z"}}])

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id})

    assert execution.status == "failed"
    assert "email cannot be updated" in execution.error_message


@pytest.mark.asyncio
async def test_list_membership_actions(workflow_engine, make_workflow, make_contact, test_db):
    contact = make_contact()
    contact_list = ContactList(name="Clients")
    test_db.add(contact_list)
    test_db.commit()
    make_workflow("contact_created", [
        {"type": "add_to_list", "config": {"list_id": contact_list.id}},
        {"type": "add_to_list", "config": {"list_id": contact_list.id}},
    ])

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id})

    repo = ContactRepository(test_db)
    assert execution.status == "completed"
    assert repo.is_member(contact.id, contact_list.id)

    repo.remove_from_list(contact.id, contact_list.id)
    assert not repo.is_member(contact.id, contact_list.id)


@pytest.mark.asyncio
async def test_form_submission_creates_contact_and_sends_email(workflow_engine, make_workflow, welcome_template,
                                                              mock_mail_sender, test_db):
    make_workflow("form_submission", [
        {"type": "create_contact", "config": {}},
        tag("lead"),
        {"type": "send_email", "config": {"template_id": welcome_template.id}},
    ], trigger_config={"form_id": "form-1"})

    payload = {
        "form_id": "form-1",
        "submission_id": "sub-1",
        "submission_data": {"field_1": "jean.dupont@example.com", "prenom": "Jean", "nom": "Dupont"},
    }
    [execution] = await workflow_engine.trigger("form_submission", payload)

    contact = test_db.query(Contact).one()
    assert execution.status == "completed"
    assert execution.contact_id == contact.id
    assert contact.email == "jean.dupont@example.com"
    assert contact.first_name == "Jean"
    assert contact.tags == ["lead"]
    assert contact.contact_metadata["form_submission_id"] == "sub-1"

    mock_mail_sender.send.assert_awaited_once_with(
        "jean.dupont@example.com",
        "Bienvenue Jean",
        "<p>Bonjour Jean Dupont, merci pour form-1. {unknown}</p>",
    )


@pytest.mark.asyncio
async def test_repeated_submissions_update_the_same_contact(workflow_engine, make_workflow, test_db):
    make_workflow("form_submission", [{"type": "create_contact", "config": {}}])

    await workflow_engine.trigger("form_submission", {"data": {"email": "anne@example.com", "prenom": "Anne"}})
    await workflow_engine.trigger("form_submission", {"data": {"email": "anne@example.com", "telephone": "0102"}})

    contact = test_db.query(Contact).one()
    assert contact.first_name == "Anne"
    assert contact.phone == "0102"


@pytest.mark.asyncio
async def test_form_without_email_fails_create_contact(workflow_engine, make_workflow):
    make_workflow("form_submission", [{"type": "create_contact", "config": {}}])

    [execution] = await workflow_engine.trigger("form_submission", {"data": {"prenom": "Sans mail"}})

    assert execution.status == "failed"
    assert execution.contact_id is None
    assert "Email missing" in execution.error_message


@pytest.mark.asyncio
async def test_contact_action_without_contact_fails(workflow_engine, make_workflow):
    make_workflow("email_opened", [tag("opened")])

    [execution] = await workflow_engine.trigger("email_opened", {"template_id": "tpl"})

    assert execution.status == "failed"
    assert "No contact available" in execution.error_message


@pytest.mark.asyncio
async def test_send_notification_mails_the_admin(workflow_engine, make_workflow, make_contact, mock_mail_sender):
    contact = make_contact(first_name="Paul", last_name="Martin")
    make_workflow("contact_created", [{"type": "send_notification", "config": {"message": "Nouveau prospect"}}])

    [execution] = await workflow_engine.trigger("contact_created", {"contact_id": contact.id})

    assert execution.status == "completed"
    to, subject, html = mock_mail_sender.send.await_args.args
    assert to == "admin@example.com"
    assert subject == "Notification workflow: Nouveau prospect"
    assert "Paul Martin" in html
