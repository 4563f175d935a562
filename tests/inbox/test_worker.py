"""Tests for inbox.worker — queue selection and worker start-up."""
import pytest
from unittest.mock import MagicMock, patch

from inbox.worker import main


@pytest.fixture
def rq_mocks(mock_redis):
    worker = MagicMock()
    with patch('rq.Queue') as queue_cls, \
            patch('rq.Worker', return_value=worker) as worker_cls, \
            patch('inbox.worker.configure_logging'):
        yield queue_cls, worker_cls, worker


class TestWorkerMain:

    def test_all_queues_by_default(self, rq_mocks):
        queue_cls, worker_cls, worker = rq_mocks
        assert main([]) == 0
        names = [c.args[0] for c in queue_cls.call_args_list]
        assert names == ['ingestion', 'analysis', 'maintenance']
        worker.work.assert_called_once_with(burst=False, with_scheduler=True)

    def test_selected_queues_and_burst(self, rq_mocks):
        queue_cls, _, worker = rq_mocks
        main(['analysis', '--burst'])
        assert [c.args[0] for c in queue_cls.call_args_list] == ['analysis']
        worker.work.assert_called_once_with(burst=True, with_scheduler=True)

    def test_unknown_queue_exits(self, rq_mocks):
        with pytest.raises(SystemExit):
            main(['emails'])
        rq_mocks[2].work.assert_not_called()
