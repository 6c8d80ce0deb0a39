import time

from asgiref.sync import async_to_sync
from django.core.management.base import BaseCommand

from chat.chatrooms import ChatroomLifecycleManager


class Command(BaseCommand):
    help = '만료된 게임 채팅방을 비활성화합니다. --interval 을 주면 해당 주기로 계속 실행합니다.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--interval',
            type=int,
            default=None,
            help='반복 실행 주기 (초). 생략하면 한 번만 실행합니다.',
        )

    def handle(self, *args, **options):
        interval = options['interval']
        manager = ChatroomLifecycleManager()

        if interval is None:
            self._sweep(manager)
            return

        if interval <= 0:
            self.stderr.write(self.style.ERROR('--interval 은 1 이상이어야 합니다.'))
            return

        self.stdout.write(f'{interval}초 주기로 만료 채팅방 정리를 시작합니다. (종료: Ctrl+C)')
        try:
            while True:
                self._sweep(manager)
                time.sleep(interval)
        except KeyboardInterrupt:
            self.stdout.write('정리 작업을 종료합니다.')

    def _sweep(self, manager):
        deactivated = async_to_sync(manager.sweep_expired)()
        self.stdout.write(self.style.SUCCESS(f'만료된 게임 채팅방 {deactivated}개 비활성화'))
