from yahtzee import db
import json
import random
import time

# No I/O/0/1, to avoid confusion when codes are read aloud
ROOM_CODE_CHARS = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'


def generate_room_code(length=4):
    """Generate a short room code. Uniqueness is the caller's job."""
    return ''.join(random.choices(ROOM_CODE_CHARS, k=length))


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(8), unique=True, index=True, nullable=False)
    host_session_id = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default='lobby', index=True)  # lobby, playing, finished
    max_players = db.Column(db.Integer, nullable=False, default=4)
    current_turn_player_index = db.Column(db.Integer, nullable=False, default=0)
    current_round = db.Column(db.Integer, nullable=False, default=1)
    # JSON-encoded snapshot: dice, held, roll_count, scorecards (and final_ranking once finished)
    game_state = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    started_at = db.Column(db.Float, nullable=True)
    finished_at = db.Column(db.Float, nullable=True)
    updated_at = db.Column(db.Float, nullable=False, default=time.time)
    # Optimistic-concurrency counter; every UPDATE is checked against it
    version = db.Column(db.Integer, nullable=False)

    players = db.relationship('Player', back_populates='room', order_by='Player.player_index',
                              cascade='all, delete-orphan')
    scores = db.relationship('GameScore', back_populates='room', cascade='all, delete-orphan')

    __mapper_args__ = {'version_id_col': version}

    @property
    def snapshot(self):
        return json.loads(self.game_state) if self.game_state else None

    @snapshot.setter
    def snapshot(self, value):
        self.game_state = json.dumps(value) if value is not None else None

    @property
    def host_player_index(self):
        host = next((p for p in self.players if p.session_id == self.host_session_id), None)
        return host.player_index if host else None

    def to_dict(self):
        # Session ids are credentials; the public state never carries them.
        snapshot = self.snapshot
        data = {
            'id': self.id,
            'room_code': self.code,
            'status': self.status,
            'max_players': self.max_players,
            'current_round': self.current_round,
            'current_turn_player_index': self.current_turn_player_index,
            'host_player_index': self.host_player_index,
            'version': self.version,
            'players': [p.to_dict() for p in self.players],
            'dice': None,
            'held': None,
            'roll_count': 0,
            'scorecards': None,
            'final_ranking': None,
        }
        if snapshot:
            data.update({
                'dice': snapshot['dice'],
                'held': snapshot['held'],
                'roll_count': snapshot['roll_count'],
                'scorecards': snapshot['scorecards'],
                'final_ranking': snapshot.get('final_ranking'),
            })
        return data


class Player(db.Model):
    __tablename__ = 'player'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'session_id', name='uq_player_room_session'),
        db.UniqueConstraint('room_id', 'player_index', name='uq_player_room_index'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    session_id = db.Column(db.String(64), nullable=False, index=True)
    display_name = db.Column(db.String(32), nullable=False)
    player_index = db.Column(db.Integer, nullable=False)
    is_bot = db.Column(db.Boolean, default=False, nullable=False)
    is_connected = db.Column(db.Boolean, default=True, nullable=False)
    joined_at = db.Column(db.Float, nullable=False, default=time.time)
    room = db.relationship('Room', back_populates='players')

    def to_dict(self):
        return {
            'id': self.id,
            'display_name': self.display_name,
            'player_index': self.player_index,
            'is_bot': self.is_bot,
            'is_connected': self.is_connected,
        }


class GameScore(db.Model):
    """Final totals, written once when a room finishes."""
    __tablename__ = 'game_score'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    upper_total = db.Column(db.Integer, nullable=False)
    upper_bonus = db.Column(db.Integer, nullable=False)
    lower_total = db.Column(db.Integer, nullable=False)
    grand_total = db.Column(db.Integer, nullable=False)
    is_winner = db.Column(db.Boolean, default=False, nullable=False)
    scorecard_data = db.Column(db.Text, nullable=False)  # JSON-encoded scorecard
    created_at = db.Column(db.Float, nullable=False, default=time.time)
    room = db.relationship('Room', back_populates='scores')
    player = db.relationship('Player')

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'upper_total': self.upper_total,
            'upper_bonus': self.upper_bonus,
            'lower_total': self.lower_total,
            'grand_total': self.grand_total,
            'is_winner': self.is_winner,
            'scorecard': json.loads(self.scorecard_data),
        }
