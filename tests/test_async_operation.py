from async_operation import AsyncOperation, AsyncStatus


class Steps(AsyncOperation):
    def __init__(self, steps, fail=False):
        super().__init__()
        self.steps = steps
        self.fail = fail
        self.updates = 0

    def update(self):
        self.updates += 1
        if self.updates >= self.steps:
            if self.fail:
                self.set_error("boom")
            else:
                self.set_done()


def test_poll_advances_until_done():
    op = Steps(3)
    assert op.poll() == AsyncStatus.RUNNING
    assert op.message() == "in progress"
    assert op.poll() == AsyncStatus.RUNNING
    assert op.poll() == AsyncStatus.DONE
    assert op.message() == "done"
    assert op.is_terminal


def test_poll_after_done_is_noop():
    op = Steps(1)
    op.poll()
    for _ in range(5):
        assert op.poll() == AsyncStatus.DONE
    assert op.updates == 1


def test_error_state_never_changes():
    op = Steps(1, fail=True)
    assert op.poll() == AsyncStatus.ERROR
    op.set_done()
    op.set_error("other")
    assert op.poll() == AsyncStatus.ERROR
    assert op.message() == "boom"
    assert op.updates == 1


def test_empty_error_message_gets_text():
    op = Steps(99)
    op.set_error("")
    assert op.status == AsyncStatus.ERROR
    assert op.message()
