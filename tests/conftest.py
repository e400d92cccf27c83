import pytest
from aplus.scheduling import QueueScheduler, use_scheduler


@pytest.fixture
def scheduler():
	"""Run the test under a scheduler whose turns are drained explicitly."""
	queue = QueueScheduler()
	with use_scheduler(queue):
		yield queue
