from typing import Any

from fastapi.testclient import TestClient

from test.constants import ADMIN_ACTOR_ID, HOLD, TEST_EVENT_ID, TICKET_TYPE_CREATE


def assert_response_status(response, expected_status: int, message: str | None = None):
    response_text = getattr(response, 'text', getattr(response, 'content', 'N/A'))
    assert response.status_code == expected_status, (
        message or f'Expected {expected_status}, got {response.status_code}: {response_text}'
    )


def create_ticket_type(
    client: TestClient,
    ticket_type_id: str,
    total_quantity: int,
    event_id: str = TEST_EVENT_ID,
) -> dict[str, Any]:
    response = client.post(
        TICKET_TYPE_CREATE,
        json={
            'ticket_type_id': ticket_type_id,
            'event_id': event_id,
            'total_quantity': total_quantity,
            'actor_id': ADMIN_ACTOR_ID,
        },
    )
    assert_response_status(response, 201)
    return response.json()


def request_hold(
    client: TestClient,
    ticket_type_id: str,
    quantity: int,
    session_id: str,
    **extra: Any,
):
    return client.post(
        HOLD,
        json={
            'ticket_type_id': ticket_type_id,
            'quantity': quantity,
            'session_id': session_id,
            **extra,
        },
    )
