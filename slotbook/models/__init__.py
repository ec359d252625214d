from .host import Host
from .schedule import Schedule, Availability
from .event_type import EventType
from .credential import Credential
from .payment import Payment
from .booking import Booking, Attendee, BookingReference
from .email_template import EmailTemplate
