"""
어댑터 레이어

외부 저장소와의 연동을 담당. 현재는 SQLite(WAL)만 제공.
"""
