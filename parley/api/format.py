"""One-line human summaries for operation results."""

from typing import Any


def plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def registered(data: dict[str, Any]) -> str:
    return f"Registered {data['name']} as {data['id']}"


def unregistered(data: dict[str, Any]) -> str:
    if not data.get("success"):
        return "Agent not found"
    name = data.get("agent_name")
    return f"Unregistered {name}" if name else "Agent unregistered"


def agents(data: list[dict[str, Any]]) -> str:
    if not data:
        return "No agents registered"
    lines = [f"Found {plural(len(data), 'agent')}:"]
    lines += [f"- {a['name']} ({a['id']}): {a['status']}" for a in data]
    return "\n".join(lines)


def profile(data: dict[str, Any]) -> str:
    stats = data["statistics"]
    return (
        f"{data['name']}: {stats['messages_sent']} sent, {stats['messages_received']} received, "
        f"{stats['broadcasts_sent']} broadcasts, up {stats['uptime']}"
    )


def sent(data: dict[str, Any]) -> str:
    return f"Message sent ({data['message_id']})"


def inbox(data: list[dict[str, Any]]) -> str:
    if not data:
        return "No new messages"
    lines = [f"{plural(len(data), 'message')}:"]
    lines += [f"- from {m['from_name']}: {m['message']}" for m in data]
    return "\n".join(lines)


def status_update(data: dict[str, Any]) -> str:
    if not data.get("success"):
        return data.get("message", "Agent not found")
    return f"Status changed from '{data['previous_status']}' to '{data['new_status']}'"


def subscribed(data: dict[str, Any]) -> str:
    return f"Subscribed to {', '.join(data['events'])}"


def unsubscribed(data: dict[str, Any]) -> str:
    if not data.get("success"):
        return data.get("message", "No subscription found")
    remaining = data.get("remaining") or []
    if remaining:
        return f"Unsubscribed; still subscribed to {', '.join(remaining)}"
    return "Unsubscribed from all notifications"


def broadcast(data: dict[str, Any]) -> str:
    if data.get("success"):
        return f"Broadcast sent to {plural(data['recipient_count'], 'agent')}"
    return f"Broadcast denied: {data.get('error')}. {data.get('consequence', '')}".strip()


def pending(data: list[dict[str, Any]]) -> str:
    return f"{plural(len(data), 'pending notification')}"


def granted(data: dict[str, Any]) -> str:
    if data.get("granted"):
        return f"Speaking stick granted to {data['current_holder_name']}"
    return f"Grant denied: {data['error']}"


def requested(data: dict[str, Any]) -> str:
    if data.get("queued"):
        return f"Hand raised: #{data['queue_position']} in queue"
    return f"Request not queued: {data['error']}"


def released(data: dict[str, Any]) -> str:
    if not data.get("released"):
        return f"Cannot release: {data['error']}"
    text = f"Speaking stick passed to {data.get('next_holder_name') or data.get('next_holder')}"
    if data.get("suggested_next"):
        text += f" (suggested next: {data['suggested_next']})"
    return text


def mode_changed(data: dict[str, Any]) -> str:
    if not data.get("changed"):
        return f"Mode unchanged: {data['error']}"
    return f"Communication mode changed from {data['previous_mode']} to {data['new_mode']}"


def violation(data: dict[str, Any]) -> str:
    return f"Violation tracked for {data['agent_id']}: {data['consequence_applied']}"


def nudges(data: dict[str, Any]) -> str:
    return f"Found {plural(len(data['silent_agents']), 'silent agent')}"


def stick_status(data: dict[str, Any]) -> str:
    if data["mode"] == "chaos":
        return "In chaos mode - everyone can broadcast freely"
    if data["current_holder"]:
        waiting = plural(data["queue_length"], "agent")
        return f"{data['current_holder_name']} has the speaking stick with {waiting} waiting"
    return "Speaking stick is available - no one currently holds it"


def reset(data: dict[str, Any]) -> str:
    return "Speaking stick forcefully reset - everyone may broadcast"
