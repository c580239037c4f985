import threading

from photosbridge.state import BridgeState, LogEvent, ServerState, ServerStatus


def test_initial_state():
	state = BridgeState()
	assert state.status == ServerStatus.Initializing()
	assert [_.message for _ in state.logs] == ["App Launched."]


def test_log_is_bounded():
	state = BridgeState(capacity=1000)
	events = [state.log(f"Event {i}") for i in range(1001)]
	logs = state.logs
	assert len(logs) == 1000
	assert events[0] not in logs
	assert logs == tuple(events[1:])


def test_log_event_format():
	event = LogEvent(0.0, "Server listening on port 27345")
	assert str(event).startswith("[")
	assert str(event).endswith("] Server listening on port 27345")


def test_transitions():
	state = BridgeState()
	assert state.setStatus(ServerStatus.AwaitingPermission())
	assert state.setStatus(ServerStatus.Running(27345))
	assert state.status.label == "Running on :27345"
	# Running does not go back
	assert not state.setStatus(ServerStatus.AwaitingPermission())
	assert state.setStatus(ServerStatus.Failed("Connection refused"))
	assert state.status.isTerminal
	assert state.status.label == "Failed: Connection refused"
	# Terminal states are never left
	assert not state.setStatus(ServerStatus.Running(27345))
	assert state.status.state is ServerState.Failed


def test_terminal_states():
	for status in (
		ServerStatus.PermissionDenied(),
		ServerStatus.ListenerError("Address already in use"),
	):
		state = BridgeState()
		assert state.setStatus(status)
		assert status.isTerminal
		assert not state.setStatus(ServerStatus.Running(1))
	assert not ServerStatus.Running(1).isTerminal


def test_subscribe():
	state = BridgeState()
	received: list[object] = []
	unsubscribe = state.subscribe(lambda s, e: received.append(s or e))
	state.setStatus(ServerStatus.Running(80))
	event = state.log("Hello")
	unsubscribe()
	state.log("Ignored")
	assert received == [ServerStatus.Running(80), event]


def test_subscriber_failure_is_contained():
	state = BridgeState()

	def failing(status, event):
		raise RuntimeError("Renderer crashed")

	state.subscribe(failing)
	state.log("Still logged")
	assert state.logs[-1].message == "Still logged"


def test_concurrent_logging():
	state = BridgeState(capacity=50)

	def worker(n: int):
		for i in range(100):
			state.log(f"{n}:{i}")

	threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()
	snapshot = state.snapshot()
	assert len(snapshot.logs) == 50
	assert snapshot.status == ServerStatus.Initializing()


# EOF
