from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from hotel_backoffice.models import Hotel, Room


class Command(BaseCommand):
    help = 'Populate database with a demo hotel and its rooms'

    def add_arguments(self, parser):
        parser.add_argument('--email', default='demo@hotel.test')
        parser.add_argument('--password', default='demo-password-123')

    def handle(self, *args, **options):
        User = get_user_model()
        email = options['email']

        user, created = User.objects.get_or_create(username=email, defaults={'email': email})
        if created:
            user.set_password(options['password'])
            user.save()

        hotel, _ = Hotel.objects.get_or_create(
            owner=user,
            defaults={
                'name': 'Demo Hotel',
                'email': email,
                'phone': '+234 800 000 0000',
                'address': '1 Marina Road',
                'city': 'Lagos',
            }
        )

        # Create rooms
        rooms_data = [
            {
                'name': 'Classic Room',
                'type': Room.Type.STANDARD,
                'price': 25000,
                'capacity': 2,
                'total_rooms': 10,
                'amenities': ['Wi-Fi', 'TV', 'Air Conditioning'],
                'description': 'Comfortable standard room with city view'
            },
            {
                'name': 'Deluxe King',
                'type': Room.Type.DELUXE,
                'price': 40000,
                'capacity': 2,
                'total_rooms': 6,
                'amenities': ['Wi-Fi', 'TV', 'Mini Bar', 'Air Conditioning', 'Coffee Maker'],
                'description': 'Spacious deluxe room with a king bed'
            },
            {
                'name': 'Family Suite',
                'type': Room.Type.SUITE,
                'price': 65000,
                'capacity': 4,
                'total_rooms': 3,
                'amenities': ['Wi-Fi', 'TV', 'Room Service', 'Safe', 'Balcony'],
                'description': 'Large family suite with kitchenette'
            },
            {
                'name': 'Presidential Suite',
                'type': Room.Type.PRESIDENTIAL_SUITE,
                'price': 250000,
                'capacity': 6,
                'total_rooms': 1,
                'amenities': [choice for choice in Room.Amenity.values],
                'description': 'Top floor suite with panoramic views'
            }
        ]

        for room_data in rooms_data:
            room, created = Room.objects.get_or_create(
                hotel=hotel,
                name=room_data['name'],
                defaults={
                    **room_data,
                    'available_rooms': room_data['total_rooms'],
                    'images': ['/media/rooms/placeholder.jpg'],
                }
            )

            if created:
                self.stdout.write(f'Created room: {room.name} - {room.type}')
            else:
                self.stdout.write(f'Room {room.name} already exists')

        self.stdout.write(
            self.style.SUCCESS(f'Successfully populated database for {hotel.name} ({email})')
        )
