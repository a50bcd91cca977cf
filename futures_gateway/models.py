from datetime import datetime

from futures_gateway import db
from futures_gateway.constants import PositionMode, PositionType
from futures_gateway.security.encryption import decrypt_value, encrypt_value, mask_value


def _iso(value):
    return value.isoformat() if value else None


class FuturesOrder(db.Model):
    """선물 주문 테이블"""
    __tablename__ = 'futures_orders'

    id = db.Column(db.Integer, primary_key=True)
    symbol = db.Column(db.String(20), nullable=False)
    side = db.Column(db.String(10), nullable=False)  # BUY, SELL
    order_type = db.Column(db.String(30), nullable=False)  # 요청한 타입 (STOP_LIMIT 그대로 저장)
    quantity = db.Column(db.Float, nullable=False, default=0.0)
    price = db.Column(db.Float, nullable=True)
    stop_price = db.Column(db.Float, nullable=True)
    activation_price = db.Column(db.Float, nullable=True)  # TRAILING_STOP_MARKET
    callback_rate = db.Column(db.Float, nullable=True)  # TRAILING_STOP_MARKET
    leverage = db.Column(db.Integer, nullable=True)
    position_side = db.Column(db.String(10), nullable=True)  # BOTH, LONG, SHORT
    time_in_force = db.Column(db.String(10), nullable=True)
    good_till_date = db.Column(db.BigInteger, nullable=True)  # ms
    working_type = db.Column(db.String(20), nullable=True)
    reduce_only = db.Column(db.Boolean, default=False, nullable=False)
    close_position = db.Column(db.Boolean, default=False, nullable=False)
    stp_mode = db.Column(db.String(20), nullable=True)
    price_match = db.Column(db.String(20), nullable=True)
    new_order_resp_type = db.Column(db.String(10), nullable=True)
    binance_order_id = db.Column(db.BigInteger, unique=True, nullable=True)
    client_order_id = db.Column(db.String(64), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default='NEW')
    executed_qty = db.Column(db.Float, default=0.0, nullable=False)
    avg_price = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index('idx_futures_orders_symbol_created', 'symbol', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'symbol': self.symbol,
            'side': self.side,
            'order_type': self.order_type,
            'quantity': self.quantity,
            'price': self.price,
            'stop_price': self.stop_price,
            'activation_price': self.activation_price,
            'callback_rate': self.callback_rate,
            'leverage': self.leverage,
            'position_side': self.position_side,
            'time_in_force': self.time_in_force,
            'good_till_date': self.good_till_date,
            'working_type': self.working_type,
            'reduce_only': self.reduce_only,
            'close_position': self.close_position,
            'stp_mode': self.stp_mode,
            'price_match': self.price_match,
            'new_order_resp_type': self.new_order_resp_type,
            'binance_order_id': self.binance_order_id,
            'client_order_id': self.client_order_id,
            'status': self.status,
            'executed_qty': self.executed_qty,
            'avg_price': self.avg_price,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<FuturesOrder {self.symbol} {self.side} {self.order_type} {self.quantity} @ {self.price} ({self.status})>'


class Position(db.Model):
    """보유 포지션 테이블 (symbol, type, side 조합이 유일)"""
    __tablename__ = 'positions'

    id = db.Column(db.Integer, primary_key=True)
    symbol = db.Column(db.String(20), nullable=False)
    type = db.Column(db.String(10), nullable=False, default=PositionType.FUTURES)
    side = db.Column(db.String(10), nullable=False)  # LONG, SHORT
    quantity = db.Column(db.Float, nullable=False, default=0.0)
    entry_price = db.Column(db.Float, nullable=False, default=0.0)
    current_price = db.Column(db.Float, nullable=True)  # mark price
    unrealized_pnl = db.Column(db.Float, nullable=True)
    leverage = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('symbol', 'type', 'side', name='unique_position_symbol_type_side'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'symbol': self.symbol,
            'type': self.type,
            'side': self.side,
            'quantity': self.quantity,
            'entry_price': self.entry_price,
            'current_price': self.current_price,
            'unrealized_pnl': self.unrealized_pnl,
            'leverage': self.leverage,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Position {self.type} {self.symbol} {self.side} {self.quantity} @ {self.entry_price}>'


class APICredential(db.Model):
    """Binance API 자격 증명 테이블 (시크릿은 Fernet 암호화 저장)"""
    __tablename__ = 'api_credentials'

    id = db.Column(db.Integer, primary_key=True)
    api_key = db.Column(db.String(128), unique=True, nullable=False)
    secret_key_encrypted = db.Column(db.Text, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    is_testnet = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def secret_key(self) -> str:
        return decrypt_value(self.secret_key_encrypted)

    @secret_key.setter
    def secret_key(self, value: str):
        self.secret_key_encrypted = encrypt_value(value)

    def to_dict(self):
        """응답용 직렬화 (시크릿은 절대 포함하지 않음)"""
        return {
            'id': self.id,
            'api_key': mask_value(self.api_key),
            'is_active': self.is_active,
            'is_testnet': self.is_testnet,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<APICredential {mask_value(self.api_key)} active={self.is_active} testnet={self.is_testnet}>'


class PositionModeConfig(db.Model):
    """마지막으로 확인/설정한 포지션 모드"""
    __tablename__ = 'position_mode_configs'

    id = db.Column(db.Integer, primary_key=True)
    mode = db.Column(db.String(10), nullable=False, default=PositionMode.ONEWAY)  # ONEWAY, HEDGE
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def dual_side(self) -> bool:
        return self.mode == PositionMode.HEDGE

    def to_dict(self):
        return {
            'mode': self.mode,
            'dual_side': self.dual_side,
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<PositionModeConfig {self.mode}>'
