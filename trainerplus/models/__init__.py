# -*- coding: utf-8 -*-
from trainerplus.database import db

from .user import User
from .club import Club, Group, Student
from .session import ClassSession
from .subscription import Subscription, SubscriptionStatus
from .attendance import Attendance, AttendanceStatus
from .payment import Payment, PaymentStatus, PaymentMethod
