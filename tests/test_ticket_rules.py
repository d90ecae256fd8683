"""
Tests for ticket priority, lifecycle and the dispatch board
"""
import random
import pytest
from datetime import datetime
from unittest.mock import Mock

from services.dispatch_board import DispatchBoard, group_tickets
from services.ticket_rules import (
    InvalidTicketTransition,
    check_transition,
    classify_priority,
    display_status,
    generate_ticket_number,
)


@pytest.mark.unit
class TestClassifyPriority:
    """URGENT only for a down system that needs attention now"""

    @pytest.mark.parametrize('category,urgency,expected', [
        ('No heat', 'ASAP', 'URGENT'),
        ('No cool', 'high', 'URGENT'),
        ('No cool', 'asap', 'URGENT'),
        ('No heat', 'can wait', 'NORMAL'),
        ('Furnace', 'ASAP', 'NORMAL'),
        ('Leak', 'high', 'NORMAL'),
        ('No heat', None, 'NORMAL'),
    ])
    def test_classify(self, category, urgency, expected):
        assert classify_priority({'issueCategory': category, 'urgency': urgency}) == expected

    def test_empty_record_is_normal(self):
        assert classify_priority({}) == 'NORMAL'
        assert classify_priority(None) == 'NORMAL'


@pytest.mark.unit
class TestTransitions:
    """READY -> DISPATCHED -> COMPLETED"""

    def test_forward_moves(self):
        assert check_transition('READY', 'DISPATCHED') is True
        assert check_transition('DISPATCHED', 'COMPLETED') is True
        assert check_transition('READY', 'COMPLETED') is True

    def test_same_status_is_noop(self):
        assert check_transition('DISPATCHED', 'DISPATCHED') is False

    def test_backward_move_rejected(self):
        with pytest.raises(InvalidTicketTransition):
            check_transition('COMPLETED', 'READY')

    def test_backward_move_with_reopen(self):
        assert check_transition('COMPLETED', 'DISPATCHED', reopen=True) is True

    def test_unknown_target(self):
        with pytest.raises(InvalidTicketTransition):
            check_transition('READY', 'ARCHIVED')

    def test_invalid_stored_status_is_ready(self):
        assert display_status('garbage') == 'READY'
        assert display_status(None) == 'READY'
        assert check_transition('garbage', 'READY') is False


@pytest.mark.unit
class TestTicketNumber:
    """HVAC-YYYY-MMDD-####"""

    def test_format(self):
        number = generate_ticket_number(datetime(2026, 3, 7), random.Random(1))
        assert number.startswith('HVAC-2026-0307-')
        assert len(number.split('-')[-1]) == 4

    def test_default_is_today(self):
        assert generate_ticket_number().startswith(f"HVAC-{datetime.utcnow():%Y}-")


def ticket(ticket_id, status='READY', priority='NORMAL', started_at='2026-01-01T10:00:00'):
    return {'id': ticket_id, 'ticket_status': status, 'priority': priority, 'started_at': started_at}


@pytest.mark.unit
class TestDispatchBoard:
    """Grouping, ordering and optimistic moves"""

    def test_urgent_first_then_newest(self):
        columns = group_tickets([
            ticket('old-normal', started_at='2026-01-01T08:00:00'),
            ticket('new-normal', started_at='2026-01-02T08:00:00'),
            ticket('old-urgent', priority='URGENT', started_at='2025-12-30T08:00:00'),
        ])
        assert [t['id'] for t in columns['READY']] == ['old-urgent', 'new-normal', 'old-normal']

    def test_invalid_status_lands_in_ready(self):
        columns = group_tickets([ticket('x', status='NEW')])
        assert [t['id'] for t in columns['READY']] == ['x']

    def test_urgent_only_filter(self):
        board = DispatchBoard([ticket('a'), ticket('b', priority='URGENT', status='DISPATCHED')], urgent_only=True)
        assert board.counts() == {'READY': 0, 'DISPATCHED': 1, 'COMPLETED': 0}

    def test_move_persists(self):
        persist = Mock()
        board = DispatchBoard([ticket('a')])
        assert board.move('a', 'DISPATCHED', persist) is True
        persist.assert_called_once_with('a', 'DISPATCHED')
        assert board.get('a')['ticket_status'] == 'DISPATCHED'

    def test_move_to_same_status_skips_persist(self):
        persist = Mock()
        board = DispatchBoard([ticket('a', status='DISPATCHED')])
        assert board.move('a', 'DISPATCHED', persist) is False
        persist.assert_not_called()

    def test_failed_persist_rolls_back(self):
        persist = Mock(side_effect=RuntimeError('database down'))
        board = DispatchBoard([ticket('a')])
        with pytest.raises(RuntimeError):
            board.move('a', 'COMPLETED', persist)
        assert board.get('a')['ticket_status'] == 'READY'
        assert board.counts()['READY'] == 1

    def test_backward_move_rejected_without_persist(self):
        persist = Mock()
        board = DispatchBoard([ticket('a', status='COMPLETED')])
        with pytest.raises(InvalidTicketTransition):
            board.move('a', 'READY', persist)
        persist.assert_not_called()
