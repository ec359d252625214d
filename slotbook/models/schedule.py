from slotbook import db
from slotbook.models.host import _now


class Schedule(db.Model):
    __tablename__ = "schedules"

    id = db.Column(db.Integer, primary_key=True)
    host_id = db.Column(db.Integer, db.ForeignKey("hosts.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False, default="Working hours")
    timezone = db.Column(db.String(64), nullable=False, default="America/New_York")
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=_now, nullable=False)

    availability = db.relationship(
        "Availability", backref="schedule", cascade="all, delete-orphan", lazy="selectin"
    )

    @staticmethod
    def default_for(host_id: int):
        return Schedule.query.filter_by(host_id=host_id, is_default=True).first()

    @staticmethod
    def create_default(host_id: int, tz_name: str) -> "Schedule":
        # Mon-Fri 09:00-17:00
        schedule = Schedule(host_id=host_id, timezone=tz_name, is_default=True)
        for dow in range(1, 6):
            schedule.availability.append(
                Availability(day_of_week=dow, start_time="09:00", end_time="17:00")
            )
        db.session.add(schedule)
        return schedule


class Availability(db.Model):
    __tablename__ = "availability"

    id = db.Column(db.Integer, primary_key=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey("schedules.id"), nullable=False, index=True)
    # 0=Sunday ... 6=Saturday
    day_of_week = db.Column(db.Integer, nullable=False)
    start_time = db.Column(db.String(8), nullable=False)  # HH:MM, schedule timezone
    end_time = db.Column(db.String(8), nullable=False)
