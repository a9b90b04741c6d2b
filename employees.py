"""FastAPI router for employee lifecycle transitions."""

from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import get_db
from models import Employee
from simple_state import SessionStore, TransitionError, TransitionExecutor, UnknownTransition


logger = logging.getLogger(__name__)

router = APIRouter()


class EmployeeCreate(BaseModel):
    email: str
    name: str
    rehire_eligible: bool = True


class EmployeeOut(BaseModel):
    id: int
    email: str
    name: str
    state: str
    rehire_eligible: bool
    access_revoked: bool
    invited_at: Optional[dt.datetime] = None
    enrolled_at: Optional[dt.datetime] = None
    suspended_at: Optional[dt.datetime] = None
    terminated_at: Optional[dt.datetime] = None


class TransitionsOut(BaseModel):
    state: str
    available: List[str]
    defined: List[str]


class TransitionResult(BaseModel):
    event: str
    from_state: str
    employee: EmployeeOut


class EligibilityUpdate(BaseModel):
    rehire_eligible: bool = Field(..., description="Whether a suspended or terminated employee may be reactivated.")


def _to_employee_model(emp: Employee) -> EmployeeOut:
    return EmployeeOut(
        id=emp.id,
        email=emp.email,
        name=emp.name,
        state=emp.state,
        rehire_eligible=emp.rehire_eligible,
        access_revoked=emp.access_revoked,
        invited_at=emp.invited_at,
        enrolled_at=emp.enrolled_at,
        suspended_at=emp.suspended_at,
        terminated_at=emp.terminated_at,
    )


def _get_employee_or_404(db: Session, employee_id: int) -> Employee:
    emp = db.get(Employee, employee_id)
    if not emp:
        raise HTTPException(status_code=404, detail="Employee not found")
    return emp


@router.post("", response_model=EmployeeOut, status_code=201)
def create_employee(req: EmployeeCreate, db: Session = Depends(get_db)) -> EmployeeOut:
    """Create an employee in the ``created`` state."""
    try:
        emp = Employee(email=req.email, name=req.name, rehire_eligible=req.rehire_eligible)
        db.add(emp)
        db.commit()
        db.refresh(emp)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.info("Employee create rejected: %s", exc)
        raise HTTPException(status_code=422, detail="Employee could not be saved") from exc
    return _to_employee_model(emp)


@router.get("", response_model=List[EmployeeOut])
def list_employees(state: Optional[str] = None, db: Session = Depends(get_db)) -> List[EmployeeOut]:
    """List employees, optionally filtered by state."""
    query = select(Employee).order_by(Employee.id)
    if state:
        query = query.where(Employee.state == state)
    return [_to_employee_model(e) for e in db.scalars(query)]


@router.get("/{employee_id}", response_model=EmployeeOut)
def get_employee(employee_id: int, db: Session = Depends(get_db)) -> EmployeeOut:
    return _to_employee_model(_get_employee_or_404(db, employee_id))


@router.put("/{employee_id}/eligibility", response_model=EmployeeOut)
def set_eligibility(employee_id: int, req: EligibilityUpdate, db: Session = Depends(get_db)) -> EmployeeOut:
    emp = _get_employee_or_404(db, employee_id)
    emp.rehire_eligible = req.rehire_eligible
    db.commit()
    db.refresh(emp)
    return _to_employee_model(emp)


@router.get("/{employee_id}/transitions", response_model=TransitionsOut)
def get_transitions(employee_id: int, db: Session = Depends(get_db)) -> TransitionsOut:
    """Transitions the employee can take right now. Read-only: publishes nothing."""
    emp = _get_employee_or_404(db, employee_id)
    executor = TransitionExecutor(SessionStore(db))
    return TransitionsOut(
        state=emp.state,
        available=executor.available_transitions(emp),
        defined=list(Employee.state_machine.transitions),
    )


@router.post("/{employee_id}/transitions/{name}", response_model=TransitionResult)
def fire_transition(employee_id: int, name: str, db: Session = Depends(get_db)) -> TransitionResult:
    """Run a named transition.

    404 for an unknown transition, 409 when the current state or guard
    does not allow it, 422 when storage rejects the write.
    """
    emp = _get_employee_or_404(db, employee_id)
    from_state = emp.state
    executor = TransitionExecutor(SessionStore(db))
    try:
        executor.execute(emp, name)
    except UnknownTransition as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (SQLAlchemyError, ValueError) as exc:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    db.refresh(emp)
    return TransitionResult(event=name, from_state=from_state, employee=_to_employee_model(emp))
