"""Tests for candidate ranking"""

from conftest import at, NOW
from line_agent.algorithms.ranking import (
    keyword_overlap,
    rank_gallery,
    rank_knowledge,
    rank_tickets,
    recency_score,
)
from line_agent.schemas.agent_schemas import KnowledgeEntry, PhotoJob, RepairTicket


def _job(job_id, title, start, location=""):
    return PhotoJob(id=job_id, title=title, location=location, start_time=start)


def _ticket(ticket_id, status, created, description="โปรเจคเตอร์ไม่ติด"):
    return RepairTicket(ticket_id=ticket_id, room="ห้อง 204", description=description,
                        status=status, created_at=created)


class TestScores:
    def test_keyword_overlap_bounds(self):
        assert keyword_overlap("กีฬาสี", "ภาพกีฬาสีภายใน") == 1.0
        assert keyword_overlap("กีฬาสี", "ไหว้ครู") == 0.0
        assert keyword_overlap("", "อะไรก็ได้") == 0.0

    def test_recency_half_life(self):
        assert recency_score(NOW, NOW) == 1.0
        assert abs(recency_score(at(20, 10, month=11), NOW) - 0.5) < 0.01
        assert recency_score(None, NOW) == 0.0


class TestGallery:
    def test_better_match_wins(self):
        jobs = [
            _job("a", "ประชุมผู้ปกครอง", at(19, 9)),
            _job("b", "กีฬาสีภายใน", at(1, 9)),
        ]
        assert [j.id for j in rank_gallery(jobs, "กีฬาสี", NOW)] == ["b", "a"]

    def test_recency_breaks_equal_matches(self):
        jobs = [
            _job("a", "กีฬาสี วันที่ 1", at(1, 9)),
            _job("b", "กีฬาสี วันที่ 2", at(2, 9)),
        ]
        assert [j.id for j in rank_gallery(jobs, "กีฬาสี", NOW)] == ["b", "a"]

    def test_id_breaks_full_ties(self):
        jobs = [_job("z", "กีฬาสี", at(5, 9)), _job("m", "กีฬาสี", at(5, 9))]
        assert [j.id for j in rank_gallery(jobs, "กีฬาสี", NOW)] == ["m", "z"]

    def test_order_does_not_depend_on_input_order(self):
        jobs = [
            _job("a", "กีฬาสี", at(1, 9)),
            _job("b", "กีฬาสี พิธีเปิด", at(3, 9), location="สนาม"),
            _job("c", "วันเด็ก", at(10, 9)),
        ]
        forward = [j.id for j in rank_gallery(jobs, "กีฬาสี พิธีเปิด", NOW)]
        backward = [j.id for j in rank_gallery(list(reversed(jobs)), "กีฬาสี พิธีเปิด", NOW)]
        assert forward == backward
        assert forward[0] == "b"


class TestTickets:
    def test_active_tickets_come_first(self):
        tickets = [
            _ticket("REP-1", "completed", at(19, 9)),
            _ticket("REP-2", "pending", at(1, 9)),
            _ticket("REP-3", "in_progress", at(10, 9)),
        ]
        assert [t.ticket_id for t in rank_tickets(tickets, NOW)] == ["REP-3", "REP-2", "REP-1"]

    def test_keyword_narrows_within_active(self):
        tickets = [
            _ticket("REP-1", "pending", at(19, 9), description="แอร์ไม่เย็น"),
            _ticket("REP-2", "pending", at(1, 9), description="ไมโครโฟนเสียงหอน"),
        ]
        assert rank_tickets(tickets, NOW, keyword="ไมโครโฟน")[0].ticket_id == "REP-2"


class TestKnowledge:
    def test_irrelevant_entries_are_dropped(self):
        entries = [
            KnowledgeEntry(id="1", question="วิธีเปิดโปรเจคเตอร์", answer="กดปุ่ม Power", keywords=["projector"]),
            KnowledgeEntry(id="2", question="รหัส Wi-Fi ห้องประชุม", answer="ถามฝ่ายไอที"),
        ]
        result = rank_knowledge(entries, "วิธีเปิดโปรเจคเตอร์")
        assert [e.id for e in result] == ["1"]

    def test_limit(self):
        entries = [
            KnowledgeEntry(id=str(i), question=f"ไมโครโฟน ข้อ {i}", answer="-") for i in range(5)
        ]
        assert len(rank_knowledge(entries, "ไมโครโฟน", limit=3)) == 3
