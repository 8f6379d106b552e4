import threading

from evtoolkit.async_task import AsyncTask


def test_function_runs_on_other_thread():
    idents = []
    task = AsyncTask.create(lambda: idents.append(threading.get_ident()))
    assert task.wait(5) is True
    assert len(idents) == 1
    assert idents[0] != threading.get_ident()


def test_wait_times_out_while_running():
    release = threading.Event()
    task = AsyncTask.create(lambda: release.wait(5))
    assert task.wait(0.05) is False
    release.set()
    assert task.wait(5) is True


def test_cancel_after_finish_keeps_result():
    calls = []
    task = AsyncTask.create(lambda: calls.append(1))
    assert task.wait(5)
    task.cancel()
    assert calls == [1]
    assert task.wait(0) is True


def test_each_task_runs_once():
    calls = []
    tasks = [AsyncTask.create(lambda i=i: calls.append(i)) for i in range(4)]
    assert all(task.wait(5) for task in tasks)
    assert sorted(calls) == [0, 1, 2, 3]